"""Pydantic models for domain objects, configuration, events and the control API."""

# Configuration models
from .settings import (
    EventsConfig,
    PubSubConfig,
    ReprocessingConfig,
    ReprocessorSettings,
)

# Subscription models
from .subscription import (
    CancelReason,
    SubscriptionRecord,
    SubscriptionState,
)

# Installment models
from .installment import (
    Installment,
    InstallmentDetail,
    OrderReference,
)

# Event models
from .events import (
    InstallmentEvent,
    InstallmentEventType,
)

# API models (Control API)
from .api_request import (
    ActionableInstallmentsResponse,
    AdvanceTimeRequest,
    CreateSubscriptionRequest,
    ErrorResponse,
    InstallmentResponse,
    OrderOutcomeRequest,
    OutcomeResponse,
    ResetResponse,
    ScheduleInstallmentRequest,
    SetTimeRequest,
    SubscriptionResponse,
    TimeResponse,
)

__all__ = [
    # Configuration
    "EventsConfig",
    "PubSubConfig",
    "ReprocessingConfig",
    "ReprocessorSettings",
    # Subscription
    "CancelReason",
    "SubscriptionRecord",
    "SubscriptionState",
    # Installment
    "Installment",
    "InstallmentDetail",
    "OrderReference",
    # Events
    "InstallmentEvent",
    "InstallmentEventType",
    # API
    "ActionableInstallmentsResponse",
    "AdvanceTimeRequest",
    "CreateSubscriptionRequest",
    "ErrorResponse",
    "InstallmentResponse",
    "OrderOutcomeRequest",
    "OutcomeResponse",
    "ResetResponse",
    "ScheduleInstallmentRequest",
    "SetTimeRequest",
    "SubscriptionResponse",
    "TimeResponse",
]
