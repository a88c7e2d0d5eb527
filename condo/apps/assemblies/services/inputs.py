# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Coercion of values that arrive from request data.

Anything that is not the expected type becomes InvalidInput, never a
TypeError or AttributeError deep inside a service.
"""

from decimal import Decimal, InvalidOperation

from apps.assemblies.exceptions import InvalidInput

WEIGHT_QUANTUM = Decimal("0.000001")
MAX_WEIGHT = Decimal("999")


def text(value, field: str) -> str:
    """Stripped text; a missing value is the empty string."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInput(f"{field} must be text.")
    return value.strip()


def voting_weight(value) -> Decimal:
    """A non-negative ownership fraction with six decimal places."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise InvalidInput("Voting weight must be a number.")
    try:
        weight = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInput("Voting weight must be a number.")
    if not weight.is_finite() or weight < 0 or weight > MAX_WEIGHT:
        raise InvalidInput(f"Voting weight must be between 0 and {MAX_WEIGHT}.")
    return weight.quantize(WEIGHT_QUANTUM)
