"""Identifier generation for subscriptions, installments and details.

Format: {prefix}_{uuid hex}
Example: inst_a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6
"""

import re
import uuid

INSTALLMENT_PREFIX = "inst"
DETAIL_PREFIX = "detail"
SUBSCRIPTION_PREFIX = "sub"

_ID_PATTERN = r"^{prefix}_[a-f0-9]{{32}}$"


def _generate(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def generate_installment_id() -> str:
    """Generate a unique installment identifier."""
    return _generate(INSTALLMENT_PREFIX)


def generate_detail_id() -> str:
    """Generate a unique installment detail identifier."""
    return _generate(DETAIL_PREFIX)


def generate_subscription_id() -> str:
    """Generate a unique subscription identifier."""
    return _generate(SUBSCRIPTION_PREFIX)


def is_installment_id(value: str) -> bool:
    """Check if value looks like a generated installment identifier.

    Args:
        value: String to check

    Returns:
        True if value matches the installment id format
    """
    if not value or not isinstance(value, str):
        return False
    return bool(re.match(_ID_PATTERN.format(prefix=INSTALLMENT_PREFIX), value))
