"""
Tests for finance input validators.
"""

import uuid
from datetime import datetime, timezone as dt_timezone

import pytest

from finance.exceptions import InvalidAmount
from finance.validators import (
    clean_notes,
    clean_reference_type,
    require_aware,
    require_positive_cents,
    require_uuid,
)


class TestRequirePositiveCents:
    def test_returns_value(self):
        assert require_positive_cents(1) == 1

    @pytest.mark.parametrize("value", [0, -1, -10000])
    def test_rejects_non_positive(self, value):
        with pytest.raises(InvalidAmount) as exc_info:
            require_positive_cents(value)

        assert exc_info.value.error_code == "INVALID_AMOUNT"
        assert exc_info.value.details == {"amount_cents": value}

    @pytest.mark.parametrize("value", [True, 10.5, "100", None])
    def test_rejects_non_integers(self, value):
        with pytest.raises(InvalidAmount, match="integer number of cents"):
            require_positive_cents(value)

    def test_field_name_in_message(self):
        with pytest.raises(InvalidAmount, match="take_cents"):
            require_positive_cents(0, field_name="take_cents")


class TestRequireAware:
    def test_accepts_aware(self):
        value = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)

        assert require_aware(value, "posted_at") is value

    def test_rejects_naive(self):
        with pytest.raises(InvalidAmount) as exc_info:
            require_aware(datetime(2024, 1, 1), "posted_at")

        assert exc_info.value.error_code == "INVALID_TIMESTAMP"

    def test_rejects_non_datetime(self):
        with pytest.raises(InvalidAmount):
            require_aware("2024-01-01", "paid_at")


class TestCleanReferenceType:
    def test_strips_whitespace(self):
        assert clean_reference_type("  INV ") == "INV"

    @pytest.mark.parametrize("value", ["", "   ", None, "X" * 65])
    def test_rejects_blank_or_too_long(self, value):
        with pytest.raises(InvalidAmount) as exc_info:
            clean_reference_type(value)

        assert exc_info.value.error_code == "INVALID_REFERENCE"

    def test_accepts_max_length(self):
        assert clean_reference_type("X" * 64) == "X" * 64


class TestCleanNotes:
    def test_none_stays_none(self):
        assert clean_notes(None) is None

    def test_blank_becomes_none(self):
        assert clean_notes("   ") is None

    def test_trims(self):
        assert clean_notes("  paid by wire\n") == "paid by wire"


class TestRequireUuid:
    def test_uuid_passes_through(self):
        value = uuid.uuid4()

        assert require_uuid(value, "entry_id") is value

    def test_coerces_string(self):
        value = uuid.uuid4()

        assert require_uuid(str(value), "entry_id") == value

    @pytest.mark.parametrize("value", ["garbage", "", None, 12])
    def test_rejects_malformed(self, value):
        with pytest.raises(InvalidAmount) as exc_info:
            require_uuid(value, "entry_id")

        assert exc_info.value.error_code == "INVALID_REFERENCE"
        assert exc_info.value.details == {"entry_id": repr(value)}
