import json
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from core.notifications import Notifier
from core.utils import (
    DateRange,
    calculate_date_range,
    clean_amount,
    days_between,
    quantize_amount,
    to_decimal,
)
from core.views import json_result, parse_bool, parse_id_list, parse_instant

UTC = dt_timezone.utc


# Create your tests here.
class TestCalculateDateRange:
    def test_monthly_period_ends_same_day_next_month(self):
        start = datetime(2024, 1, 15, tzinfo=UTC)
        assert calculate_date_range(start, "monthly") == DateRange(
            start, datetime(2024, 2, 15, tzinfo=UTC)
        )

    def test_monthly_period_clamps_to_month_end(self):
        start = datetime(2024, 1, 31, tzinfo=UTC)
        assert calculate_date_range(start, "monthly").end_date == datetime(2024, 2, 29, tzinfo=UTC)

    @pytest.mark.parametrize(
        "period, days",
        [("daily", 1), ("weekly", 7), ("bi-weekly", 14), ("custom", 30), ("fortnightly", 30)],
    )
    def test_day_based_periods(self, period, days):
        start = datetime(2024, 3, 1, 8, 30, tzinfo=UTC)
        assert calculate_date_range(start, period).end_date == start + timedelta(days=days)

    def test_calendar_periods(self):
        start = datetime(2024, 1, 15, tzinfo=UTC)
        assert calculate_date_range(start, "quarterly").end_date == datetime(2024, 4, 15, tzinfo=UTC)
        assert calculate_date_range(start, "semi-annually").end_date == datetime(2024, 7, 15, tzinfo=UTC)
        assert calculate_date_range(start, "annually").end_date == datetime(2025, 1, 15, tzinfo=UTC)

    def test_days_left(self):
        date_range = calculate_date_range(datetime(2024, 1, 1, tzinfo=UTC), "weekly")
        assert date_range.days_left(datetime(2024, 1, 3, tzinfo=UTC)) == 5
        assert date_range.days_left(datetime(2024, 2, 1, tzinfo=UTC)) == 0
        assert date_range.contains(datetime(2024, 1, 8, tzinfo=UTC))
        assert date_range.contains(datetime(2024, 1, 1, tzinfo=UTC))
        assert not date_range.contains(datetime(2024, 1, 8, 0, 1, tzinfo=UTC))


class TestAmounts:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("12.50", Decimal("12.50")),
            (" 3 ", Decimal("3")),
            (7, Decimal("7")),
            (None, Decimal(0)),
            ("", Decimal(0)),
            ("abc", Decimal(0)),
            ("NaN", Decimal(0)),
            ("Infinity", Decimal(0)),
            (True, Decimal(0)),
        ],
    )
    def test_to_decimal(self, value, expected):
        assert to_decimal(value) == expected

    def test_clean_amount_accepts_money_values(self):
        assert clean_amount("12.50") == Decimal("12.50")
        assert clean_amount("9999999999999.99") == Decimal("9999999999999.99")

    @pytest.mark.parametrize("value", ["0", "-1", "abc", "1e20", "10000000000000", "1.005"])
    def test_clean_amount_rejects(self, value):
        with pytest.raises(ValidationError):
            clean_amount(value)

    def test_quantize_amount_rounds_half_up(self):
        assert quantize_amount(Decimal("1.005")) == Decimal("1.01")

    def test_days_between_rounds_up(self):
        start = datetime(2024, 1, 1, tzinfo=UTC)
        assert days_between(start, start + timedelta(days=2, hours=1)) == 3
        assert days_between(start, start + timedelta(days=2)) == 2


class TestParsing:
    def test_parse_bool(self):
        assert parse_bool("on")
        assert parse_bool("True")
        assert not parse_bool("0")
        assert not parse_bool(None)

    def test_parse_id_list_accepts_repeated_and_comma_separated_values(self):
        assert parse_id_list(["1,2", "3", "x", ""]) == [1, 2, 3]

    def test_parse_instant_date_only(self, settings):
        settings.TIME_ZONE = "UTC"
        parsed = parse_instant("2024-05-01", end_of_day=True)
        assert parsed.tzinfo is not None
        assert (parsed.year, parsed.month, parsed.day, parsed.hour) == (2024, 5, 1, 23)

    def test_parse_instant_invalid(self):
        assert parse_instant("not a date") is None
        assert parse_instant("") is None


class TestNotifier:
    def test_collects_messages_and_tracks_errors(self):
        notifier = Notifier()
        notifier.success("Saved")
        assert not notifier.has_errors

        notifier.error("Failed", "Database unavailable")
        assert notifier.has_errors
        assert notifier.messages[-1] == {
            "title": "Failed",
            "message": "Database unavailable",
            "tags": "danger",
        }

    def test_json_result_fails_when_an_error_was_reported(self):
        notifier = Notifier()
        notifier.error("Failed")
        response = json_result(notifier, 200, extra=1)
        data = json.loads(response.content)
        assert data["success"] is False
        assert data["extra"] == 1

    def test_json_result_fails_on_error_status(self):
        response = json_result(Notifier(), 409)
        assert response.status_code == 409
        assert json.loads(response.content)["success"] is False
