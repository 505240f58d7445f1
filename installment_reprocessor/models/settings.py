"""Reprocessor configuration models.

Models from reprocessing.yaml configuration.
"""

from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from installment_reprocessor.utils.durations import coerce_duration


class ReprocessingConfig(BaseModel):
    """Retry policy for failed installments.

    Both durations are nullable:
    - reprocessing_interval: None means failed installments are never retried
    - maximum_reprocessing_time: None means payment failures are retried forever
    """

    reprocessing_interval: Optional[timedelta] = Field(
        default=timedelta(days=1),
        description="Delay before a failed installment is attempted again (ISO 8601, e.g. P1D)",
    )
    maximum_reprocessing_time: Optional[timedelta] = Field(
        default=None,
        description="Time since the last successful installment after which the subscription is canceled",
    )

    @field_validator("reprocessing_interval", "maximum_reprocessing_time", mode="before")
    @classmethod
    def parse_configured_duration(cls, value):
        return coerce_duration(value)

    class Config:
        json_schema_extra = {
            "example": {
                "reprocessing_interval": "P1D",
                "maximum_reprocessing_time": "P7D",
            }
        }


class PubSubConfig(BaseModel):
    """Pub/Sub configuration for installment events."""

    project_id: str = Field(default="local-project", description="GCP project ID")
    topic: str = Field(default="installment-events", description="Pub/Sub topic name")
    default_subscription: str = Field(default="installment-events-sub", description="Default subscription name")


class EventsConfig(BaseModel):
    """Installment lifecycle event publishing."""

    enabled: bool = Field(default=False, description="Publish installment events to Pub/Sub")
    publish_timeout_seconds: float = Field(default=5.0, gt=0, description="Timeout waiting for a publish ack")


class ReprocessorSettings(BaseModel):
    """Complete reprocessing.yaml configuration."""

    reprocessing: ReprocessingConfig = Field(default_factory=ReprocessingConfig)
    locale: str = Field(default="en", description="Locale used for installment detail messages")
    events: EventsConfig = Field(default_factory=EventsConfig)
    pubsub: PubSubConfig = Field(default_factory=PubSubConfig)
