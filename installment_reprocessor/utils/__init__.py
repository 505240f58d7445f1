"""Utility functions and helpers for the reprocessor."""

from installment_reprocessor.utils.durations import (
    coerce_duration,
    format_duration,
    next_actionable_date,
    parse_duration,
    truncate_to_minute,
    validate_duration,
)
from installment_reprocessor.utils.identifiers import (
    generate_detail_id,
    generate_installment_id,
    generate_subscription_id,
    is_installment_id,
)

__all__ = [
    # Identifiers
    "generate_installment_id",
    "generate_detail_id",
    "generate_subscription_id",
    "is_installment_id",
    # Durations
    "parse_duration",
    "format_duration",
    "validate_duration",
    "coerce_duration",
    "truncate_to_minute",
    "next_actionable_date",
]
