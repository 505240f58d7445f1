"""Installment and installment detail models.

An installment is one scheduled fulfillment cycle of a subscription. Each
fulfillment attempt appends an immutable InstallmentDetail describing its
outcome; the details form the installment's audit trail.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from installment_reprocessor.utils.durations import as_utc, as_utc_or_none
from installment_reprocessor.utils.identifiers import (
    generate_detail_id,
    generate_installment_id,
)


class OrderReference(BaseModel):
    """Opaque reference to an order placed for an installment."""

    number: str = Field(..., min_length=1, description="Order number")
    id: Optional[str] = Field(None, description="Order identifier in the order system")

    class Config:
        frozen = True


class InstallmentDetail(BaseModel):
    """Immutable record of one fulfillment attempt."""

    id: str = Field(default_factory=generate_detail_id, description="Detail identifier")
    installment_id: str = Field(..., min_length=1, description="Installment the attempt belongs to")
    subscription_id: str = Field(..., min_length=1, description="Subscription owning the installment")
    success: bool = Field(default=False, description="Whether the attempt succeeded")
    message: str = Field(..., description="Localized outcome description")
    order: Optional[OrderReference] = Field(None, description="Order tied to the attempt, if any")
    created_at: datetime = Field(..., description="When the attempt was recorded")

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "detail_5b4c3d2e1f0a9b8c7d6e5f4a3b2c1d0e",
                "installment_id": "inst_a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6",
                "subscription_id": "sub_0f1e2d3c4b5a69788796a5b4c3d2e1f0",
                "success": False,
                "message": "The payment for this installment failed",
                "order": {"number": "R123456789"},
                "created_at": "2024-03-10T12:34:56+00:00",
            }
        }


class Installment(BaseModel):
    """One scheduled fulfillment cycle of a subscription.

    actionable_date is None when no further attempt is scheduled, either
    because the installment was fulfilled or because it was abandoned.
    """

    id: str = Field(default_factory=generate_installment_id, description="Installment identifier")
    subscription_id: str = Field(..., min_length=1, description="Subscription owning the installment")
    actionable_date: Optional[datetime] = Field(None, description="When the installment should next be attempted")
    created_at: datetime = Field(..., description="When the installment was scheduled")
    details: list[InstallmentDetail] = Field(default_factory=list, description="Attempt outcomes, oldest first")

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("actionable_date")
    @classmethod
    def actionable_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc_or_none(value)

    @property
    def unfulfilled(self) -> bool:
        """True if no attempt for this installment has succeeded."""
        return not any(detail.success for detail in self.details)

    @property
    def fulfilled(self) -> bool:
        return not self.unfulfilled

    @property
    def last_detail(self) -> Optional[InstallmentDetail]:
        return self.details[-1] if self.details else None

    def is_actionable(self, at: datetime) -> bool:
        """Check whether the installment is due for an attempt at the given time."""
        return (
            self.actionable_date is not None
            and self.actionable_date <= at
            and self.unfulfilled
        )

    def reschedule(self, new_date: Optional[datetime], reason: str) -> None:
        """Change the actionable date and log the change.

        Args:
            new_date: New actionable date, or None to stop scheduling
            reason: Reason for the change
        """
        from installment_reprocessor.state_logger import log_actionable_date_change

        old_date = self.actionable_date
        self.actionable_date = new_date
        if old_date != new_date:
            log_actionable_date_change(
                installment_id=self.id,
                subscription_id=self.subscription_id,
                old_date=old_date,
                new_date=new_date,
                reason=reason,
            )

    def record_detail(
        self,
        success: bool,
        message: str,
        created_at: datetime,
        order: Optional[OrderReference] = None,
    ) -> InstallmentDetail:
        """Append an attempt outcome to the audit trail.

        Args:
            success: Whether the attempt succeeded
            message: Localized outcome description
            created_at: When the attempt was recorded
            order: Order tied to the attempt

        Returns:
            The new InstallmentDetail
        """
        from installment_reprocessor.state_logger import log_detail_recorded

        detail = InstallmentDetail(
            installment_id=self.id,
            subscription_id=self.subscription_id,
            success=success,
            message=message,
            order=order,
            created_at=created_at,
        )
        self.details.append(detail)
        log_detail_recorded(
            installment_id=self.id,
            subscription_id=self.subscription_id,
            success=success,
            message=message,
            order_number=order.number if order else None,
        )
        return detail

    class Config:
        json_schema_extra = {
            "example": {
                "id": "inst_a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6",
                "subscription_id": "sub_0f1e2d3c4b5a69788796a5b4c3d2e1f0",
                "actionable_date": "2024-03-12T12:34:00+00:00",
                "created_at": "2024-03-01T09:00:00+00:00",
                "details": [],
            }
        }
