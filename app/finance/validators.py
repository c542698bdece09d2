"""
Input checks shared by the finance services.

Each helper returns the cleaned value or raises InvalidAmount with an
error code naming what was wrong.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from django.utils import timezone

from .exceptions import InvalidAmount

REFERENCE_TYPE_MAX_LENGTH = 64


def require_positive_cents(amount_cents, field_name: str = "amount_cents") -> int:
    """Reject anything that is not a positive whole number of cents."""
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise InvalidAmount(
            f"{field_name} must be an integer number of cents",
            details={field_name: repr(amount_cents)},
        )
    if amount_cents <= 0:
        raise InvalidAmount(
            f"{field_name} must be positive, got {amount_cents}",
            details={field_name: amount_cents},
        )
    return amount_cents


def require_aware(value, field_name: str) -> datetime:
    """Reject naive or non-datetime timestamps."""
    if not isinstance(value, datetime) or timezone.is_naive(value):
        raise InvalidAmount(
            f"{field_name} must be a timezone-aware datetime",
            error_code="INVALID_TIMESTAMP",
            details={field_name: str(value)},
        )
    return value


def require_uuid(value, field_name: str) -> uuid.UUID:
    """Coerce an identifier to a UUID or reject it as a malformed reference."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidAmount(
            f"{field_name} must be a UUID",
            error_code="INVALID_REFERENCE",
            details={field_name: repr(value)},
        ) from None


def clean_reference_type(value: str | None, field_name: str = "reference_type") -> str:
    cleaned = (value or "").strip()
    if not cleaned or len(cleaned) > REFERENCE_TYPE_MAX_LENGTH:
        raise InvalidAmount(
            f"{field_name} must be 1-{REFERENCE_TYPE_MAX_LENGTH} characters",
            error_code="INVALID_REFERENCE",
            details={field_name: value},
        )
    return cleaned


def clean_notes(value: str | None) -> str | None:
    """Trim notes; blank notes are stored as NULL."""
    if value is None:
        return None
    return value.strip() or None
