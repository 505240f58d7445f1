"""API request and response models for the control endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from installment_reprocessor.models.installment import (
    Installment,
    InstallmentDetail,
    OrderReference,
)
from installment_reprocessor.models.subscription import SubscriptionRecord


class CreateSubscriptionRequest(BaseModel):
    """Request to register a subscription via control API."""

    user_id: str = Field(..., min_length=1, description="Owner of the subscription")
    created_at: Optional[datetime] = Field(None, description="Creation time (defaults to the virtual now)")

    class Config:
        json_schema_extra = {"example": {"user_id": "user-123"}}


class SubscriptionResponse(BaseModel):
    """Subscription state as returned by the control API."""

    id: str
    user_id: str
    state: str
    created_at: datetime
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    @classmethod
    def from_record(cls, subscription: SubscriptionRecord) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            user_id=subscription.user_id,
            state=subscription.state.value,
            created_at=subscription.created_at,
            canceled_at=subscription.canceled_at,
            cancel_reason=subscription.cancel_reason.value if subscription.cancel_reason else None,
        )


class ScheduleInstallmentRequest(BaseModel):
    """Request to schedule a new installment for a subscription."""

    subscription_id: str = Field(..., min_length=1, description="Subscription identifier")
    actionable_date: Optional[datetime] = Field(
        None, description="When the installment should be attempted (defaults to the virtual now)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "subscription_id": "sub_0f1e2d3c4b5a69788796a5b4c3d2e1f0",
                "actionable_date": "2024-04-01T00:00:00+00:00",
            }
        }


class InstallmentResponse(BaseModel):
    """Installment state as returned by the control API."""

    id: str
    subscription_id: str
    actionable_date: Optional[datetime] = None
    created_at: datetime
    fulfilled: bool
    details: list[InstallmentDetail] = Field(default_factory=list)

    @classmethod
    def from_installment(cls, installment: Installment) -> "InstallmentResponse":
        return cls(
            id=installment.id,
            subscription_id=installment.subscription_id,
            actionable_date=installment.actionable_date,
            created_at=installment.created_at,
            fulfilled=installment.fulfilled,
            details=list(installment.details),
        )


class OrderOutcomeRequest(BaseModel):
    """Order an outcome is reported for."""

    order_number: str = Field(..., min_length=1, description="Order number")
    order_id: Optional[str] = Field(None, description="Order identifier in the order system")

    def to_reference(self) -> OrderReference:
        return OrderReference(number=self.order_number, id=self.order_id)

    class Config:
        json_schema_extra = {"example": {"order_number": "R123456789"}}


class OutcomeResponse(BaseModel):
    """Result of reporting an installment outcome."""

    detail: InstallmentDetail
    installment: InstallmentResponse
    subscription_state: str


class ActionableInstallmentsResponse(BaseModel):
    """Installments due for an attempt."""

    at: datetime
    count: int
    installments: list[InstallmentResponse]


class AdvanceTimeRequest(BaseModel):
    """Request to advance the virtual clock."""

    days: int = Field(default=0, ge=0)
    hours: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0)


class SetTimeRequest(BaseModel):
    """Request to move the virtual clock to a specific instant."""

    at: datetime = Field(..., description="New virtual time")


class TimeResponse(BaseModel):
    """Virtual clock state after a time operation."""

    old_time: datetime
    new_time: datetime
    actionable_installments: list[str] = Field(
        default_factory=list, description="Installments due at the new time"
    )


class ResetResponse(BaseModel):
    """Result of resetting all state."""

    subscriptions_cleared: int
    installments_cleared: int
    message: str


class ErrorResponse(BaseModel):
    """Error body returned by the control API."""

    error: str
    message: str
