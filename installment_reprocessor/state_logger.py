"""State change logging for installments and subscriptions.

Tracks transitions with before/after values for debugging and auditing.
"""

from datetime import datetime
from typing import Any, Optional

from installment_reprocessor.logging_config import get_logger

logger = get_logger(__name__)


def _isoformat(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment is not None else None


def log_actionable_date_change(
    installment_id: str,
    subscription_id: str,
    old_date: Optional[datetime],
    new_date: Optional[datetime],
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log an installment actionable_date change.

    Args:
        installment_id: Installment identifier
        subscription_id: Owning subscription identifier
        old_date: Previous actionable date (None when unscheduled)
        new_date: New actionable date (None when unscheduled)
        reason: Reason for the change
        **extra_context: Additional context
    """
    logger.info(
        "actionable_date_changed",
        installment_id=installment_id,
        subscription_id=subscription_id,
        old_actionable_date=_isoformat(old_date),
        new_actionable_date=_isoformat(new_date),
        scheduled=new_date is not None,
        reason=reason,
        **extra_context,
    )


def log_detail_recorded(
    installment_id: str,
    subscription_id: str,
    success: bool,
    message: str,
    order_number: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log an installment detail appended to the audit trail."""
    logger.info(
        "installment_detail_recorded",
        installment_id=installment_id,
        subscription_id=subscription_id,
        success=success,
        message=message,
        order_number=order_number,
        **extra_context,
    )


def log_subscription_state_change(
    subscription_id: str,
    old_state: Any,
    new_state: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log subscription state change.

    Args:
        subscription_id: Subscription identifier
        old_state: Previous state value
        new_state: New state value
        reason: Reason for state change
        **extra_context: Additional context (user_id, etc.)
    """
    logger.info(
        "subscription_state_changed",
        subscription_id=subscription_id,
        old_state=str(old_state),
        new_state=str(new_state),
        reason=reason,
        **extra_context,
    )
