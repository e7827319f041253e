# Overview: Pytest coverage for dozen/piece arithmetic, quantity validation and UTC timestamp helpers.

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bakehouse.services.errors import InvalidQuantityError
from bakehouse.services.quantity import from_pieces, to_decimal, to_float, to_pieces
from bakehouse.time_utils import as_utc_naive, parse_iso_datetime, to_utc_z
from bakehouse.validation import require_percentage, require_quantity


class TestQuantityNormalizer:
    def test_round_trip_for_every_remainder(self):
        for dozen in range(0, 6):
            for pcs in range(0, 12):
                assert from_pieces(to_pieces(dozen, pcs)) == (dozen, pcs)

    def test_split_carries_into_dozen(self):
        split = from_pieces(25)
        assert split.dozen == 2
        assert split.pcs == 1

    def test_zero(self):
        assert from_pieces(0) == (0, 0)

    def test_decimal_goes_through_str(self):
        assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")

    def test_to_float_keeps_integers_integral(self):
        value = to_float(Decimal("10.0"))
        assert value == 10
        assert isinstance(value, int)
        assert to_float(Decimal("2.5")) == 2.5


class TestRequireQuantity:
    def test_accepts_numeric_strings(self):
        assert require_quantity("5", integer=True) == 5
        assert require_quantity(" 2.5 ") == 2.5

    def test_integral_float_becomes_int(self):
        value = require_quantity(2.0, integer=True)
        assert value == 2
        assert isinstance(value, int)

    @pytest.mark.parametrize("bad", [-1, True, None, "abc", "", "1e3", float("nan"), float("inf")])
    def test_rejects(self, bad):
        with pytest.raises(InvalidQuantityError):
            require_quantity(bad)

    def test_rejects_fractional_pieces(self):
        with pytest.raises(InvalidQuantityError):
            require_quantity(2.5, "pieces", integer=True)

    def test_zero_allowed_unless_disabled(self):
        assert require_quantity(0) == 0
        with pytest.raises(InvalidQuantityError):
            require_quantity(0, "amount", allow_zero=False)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            require_quantity(-3)

    def test_error_names_field(self):
        with pytest.raises(InvalidQuantityError, match="items\\[0\\].quantity"):
            require_quantity(-1, "items[0].quantity")

    def test_percentage(self):
        assert require_percentage("10", "tax_pct") == 10.0
        with pytest.raises(InvalidQuantityError):
            require_percentage(-5, "tax_pct")


class TestTimestamps:
    def test_offsets_normalize_to_naive_utc(self):
        assert parse_iso_datetime("2026-10-19T14:00:00+07:00") == datetime(2026, 10, 19, 7, 0)
        assert parse_iso_datetime("2026-10-19T07:00:00Z") == datetime(2026, 10, 19, 7, 0)
        assert parse_iso_datetime("  ") is None
        assert parse_iso_datetime(None) is None

    def test_aware_and_naive(self):
        aware = datetime(2026, 10, 19, 14, 0, tzinfo=timezone(timedelta(hours=7)))
        assert as_utc_naive(aware) == datetime(2026, 10, 19, 7, 0)
        assert as_utc_naive(datetime(2026, 10, 19, 7, 0)) == datetime(2026, 10, 19, 7, 0)

    def test_z_form_drops_microseconds(self):
        assert to_utc_z(datetime(2026, 10, 19, 7, 0, 5, 999)) == "2026-10-19T07:00:05Z"
        assert to_utc_z(None) is None
