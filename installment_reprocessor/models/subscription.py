"""Subscription state model.

The reprocessor only needs a subscription's identity, creation time and
state; catalog contents and line items live elsewhere.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from installment_reprocessor.utils.durations import as_utc, as_utc_or_none
from installment_reprocessor.utils.identifiers import generate_subscription_id


class SubscriptionState(str, Enum):
    """Subscription lifecycle states."""

    ACTIVE = "active"
    PENDING_CANCELLATION = "pending_cancellation"  # Canceled, still fulfilling the current cycle
    CANCELED = "canceled"
    INACTIVE = "inactive"  # Ended naturally


class CancelReason(str, Enum):
    """Why a subscription was canceled."""

    USER_CANCELED = "user_canceled"
    REPROCESSING_TIME_EXCEEDED = "reprocessing_time_exceeded"
    SYSTEM_CANCELED = "system_canceled"


class SubscriptionRecord(BaseModel):
    """Subscription owning a series of installments."""

    id: str = Field(default_factory=generate_subscription_id, description="Subscription identifier")
    user_id: str = Field(..., min_length=1, description="Owner of the subscription")
    created_at: datetime = Field(..., description="When the subscription was created")

    state: SubscriptionState = Field(default=SubscriptionState.ACTIVE, description="Current subscription state")
    cancel_reason: Optional[CancelReason] = Field(None, description="Reason for cancellation")
    canceled_at: Optional[datetime] = Field(None, description="When the subscription was canceled")

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("canceled_at")
    @classmethod
    def canceled_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc_or_none(value)

    @property
    def is_active(self) -> bool:
        return self.state == SubscriptionState.ACTIVE

    @property
    def is_canceled(self) -> bool:
        return self.state == SubscriptionState.CANCELED

    def set_state(self, new_state: SubscriptionState, reason: Optional[str] = None) -> None:
        """Change subscription state and log the transition.

        Args:
            new_state: New state to transition to
            reason: Reason for state change
        """
        from installment_reprocessor.state_logger import log_subscription_state_change

        old_state = self.state
        if old_state != new_state:
            self.state = new_state
            log_subscription_state_change(
                subscription_id=self.id,
                old_state=old_state.value,
                new_state=new_state.value,
                reason=reason,
                user_id=self.user_id,
            )

    def cancel(self, reason: CancelReason, at: datetime) -> bool:
        """Cancel the subscription.

        Idempotent - canceling an already canceled subscription is a no-op.

        Args:
            reason: Why the subscription is canceled
            at: Cancellation time

        Returns:
            True if the state changed, False if already canceled
        """
        if self.is_canceled:
            return False

        self.cancel_reason = reason
        self.canceled_at = at
        self.set_state(SubscriptionState.CANCELED, reason=reason.value)
        return True

    class Config:
        json_schema_extra = {
            "example": {
                "id": "sub_0f1e2d3c4b5a69788796a5b4c3d2e1f0",
                "user_id": "user-123",
                "created_at": "2024-01-01T09:00:00+00:00",
                "state": "active",
            }
        }
