"""Installment lifecycle event models published to Pub/Sub."""

from datetime import datetime
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, Field


class InstallmentEventType(IntEnum):
    """Installment lifecycle event types."""

    INSTALLMENT_SCHEDULED = 1  # Installment created for a subscription cycle
    INSTALLMENT_SUCCEEDED = 2  # Fulfillment attempt succeeded
    INSTALLMENT_FAILED = 3  # Fulfillment attempt failed
    INSTALLMENT_PAYMENT_FAILED = 4  # Payment for the attempt failed
    INSTALLMENT_OUT_OF_STOCK = 5  # Items unavailable, attempt postponed
    SUBSCRIPTION_CANCELED = 6  # Reprocessing budget exhausted


class InstallmentEvent(BaseModel):
    """Message published for every installment transition."""

    version: str = Field(default="1.0", description="Event schema version")
    event_type: int = Field(..., description="InstallmentEventType value")
    event_name: str = Field(..., description="InstallmentEventType name")
    event_time: datetime = Field(..., description="When the transition happened")

    installment_id: str = Field(..., description="Installment identifier")
    subscription_id: str = Field(..., description="Owning subscription identifier")
    actionable_date: Optional[datetime] = Field(None, description="Actionable date after the transition")
    order_number: Optional[str] = Field(None, description="Order tied to the attempt, if any")
    detail_id: Optional[str] = Field(None, description="Detail recorded by the transition, if any")

    class Config:
        json_schema_extra = {
            "example": {
                "version": "1.0",
                "event_type": InstallmentEventType.INSTALLMENT_PAYMENT_FAILED,
                "event_name": "INSTALLMENT_PAYMENT_FAILED",
                "event_time": "2024-03-10T12:34:56+00:00",
                "installment_id": "inst_a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6",
                "subscription_id": "sub_0f1e2d3c4b5a69788796a5b4c3d2e1f0",
                "actionable_date": "2024-03-11T12:34:00+00:00",
                "order_number": "R123456789",
            }
        }
