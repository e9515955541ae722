"""
Reporting period arithmetic.
"""

from datetime import datetime

import pytest

from kpi_server.errors import ValidationError
from kpi_server.periods import (
    is_current_period,
    is_past_period,
    period_label,
    previous_period,
    resolve_period,
    shift_month,
    validate_period,
)

NOW = datetime(2025, 3, 20)


@pytest.mark.parametrize("month,year,offset,expected", [
    (3, 2025, -1, (2, 2025)),
    (1, 2025, -1, (12, 2024)),
    (3, 2025, -3, (12, 2024)),
    (3, 2025, -15, (12, 2023)),
    (12, 2025, 1, (1, 2026)),
])
def test_shift_month(month, year, offset, expected):
    assert shift_month(month, year, offset) == expected


def test_previous_period_rolls_over_year():
    assert previous_period(1, 2026) == (12, 2025)


class TestResolvePeriod:
    def test_defaults_to_current(self):
        assert resolve_period(now=NOW) == (3, 2025)

    def test_negative_month_is_offset(self):
        assert resolve_period(-2, now=NOW) == (1, 2025)
        assert resolve_period(-5, now=NOW) == (10, 2024)

    def test_explicit_year_overrides_derived_year(self):
        assert resolve_period(-5, 2025, now=NOW) == (10, 2025)

    def test_negative_year_is_offset(self):
        assert resolve_period(6, -1, now=NOW) == (6, 2024)

    def test_string_parameters(self):
        assert resolve_period("-1", "2025", now=NOW) == (2, 2025)

    def test_month_zero(self):
        with pytest.raises(ValidationError):
            resolve_period(0, now=NOW)

    def test_month_out_of_range(self):
        with pytest.raises(ValidationError):
            resolve_period(13, now=NOW)

    def test_year_before_minimum(self):
        with pytest.raises(ValidationError):
            resolve_period(1, 2019, now=NOW)


def test_validate_period_rejects_booleans():
    with pytest.raises(ValidationError):
        validate_period(True, 2025)


def test_current_and_past():
    assert is_current_period(3, 2025, NOW)
    assert not is_current_period(3, 2024, NOW)
    assert is_past_period(2, 2025, NOW)
    assert is_past_period(12, 2024, NOW)
    assert not is_past_period(3, 2025, NOW)
    assert not is_past_period(4, 2025, NOW)


def test_period_label():
    assert period_label(2, 2025) == ("February", "2025")
