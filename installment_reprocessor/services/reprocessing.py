"""Reprocessing policy: when failed installments are retried and when to give up.

Two rules:
- A retried installment becomes actionable at (now + reprocessing_interval),
  truncated to the start of the minute.
- A subscription whose last successful installment is at least
  maximum_reprocessing_time old has exhausted its reprocessing budget. A
  subscription with no successful installment yet is measured from its
  creation time instead.
"""

from datetime import datetime, timedelta
from typing import Optional

from installment_reprocessor.logging_config import get_logger
from installment_reprocessor.models.settings import ReprocessingConfig
from installment_reprocessor.models.subscription import SubscriptionRecord
from installment_reprocessor.repositories.detail_query import InstallmentDetailQuery
from installment_reprocessor.utils.durations import next_actionable_date

logger = get_logger(__name__)


class ReprocessingPolicy:
    """Applies a ReprocessingConfig to installments and subscriptions."""

    def __init__(self, config: ReprocessingConfig, detail_query: InstallmentDetailQuery):
        self.config = config
        self.detail_query = detail_query

    @property
    def reprocessing_interval(self) -> Optional[timedelta]:
        return self.config.reprocessing_interval

    @property
    def maximum_reprocessing_time(self) -> Optional[timedelta]:
        return self.config.maximum_reprocessing_time

    def retry_date(self, now: datetime) -> Optional[datetime]:
        """Next actionable date for a retried installment, or None if retries are disabled."""
        return next_actionable_date(now, self.reprocessing_interval)

    def budget_start(self, subscription: SubscriptionRecord) -> datetime:
        """Instant the reprocessing budget is measured from.

        The creation time of the subscription's most recent successful
        detail, across all of its installments; the subscription's own
        creation time when nothing has succeeded yet.
        """
        latest_success = self.detail_query.latest_successful(subscription.id)
        if latest_success is not None:
            return latest_success.created_at
        return subscription.created_at

    def reprocessing_time_exceeded(self, subscription: SubscriptionRecord, now: datetime) -> bool:
        """Check whether the subscription has exhausted its reprocessing budget.

        Args:
            subscription: Subscription owning the failing installment
            now: Current time

        Returns:
            True if retries must stop, False otherwise (always False when unlimited)
        """
        maximum = self.maximum_reprocessing_time
        if maximum is None:
            return False

        started = self.budget_start(subscription)
        elapsed = now - started
        exceeded = elapsed >= maximum

        logger.debug(
            "reprocessing_budget_checked",
            subscription_id=subscription.id,
            budget_start=started.isoformat(),
            elapsed_seconds=elapsed.total_seconds(),
            maximum_seconds=maximum.total_seconds(),
            exceeded=exceeded,
        )
        return exceeded
