from datetime import datetime, time
from decimal import Decimal

from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from core.notifications import Notifier

TRUE_VALUES = ("1", "true", "on", "yes")


def parse_bool(value) -> bool:
    return str(value or "").strip().lower() in TRUE_VALUES


def parse_id(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_id_list(values) -> list[int]:
    """Parses ids from repeated form values or comma separated strings."""
    ids = []
    for value in values:
        for part in str(value).split(","):
            parsed = parse_id(part.strip())
            if parsed is not None:
                ids.append(parsed)
    return ids


def parse_instant(value: str | None, end_of_day: bool = False) -> datetime | None:
    """Parses an ISO date or datetime into an aware datetime, None if empty or invalid."""
    if not value:
        return None
    try:
        day = parse_date(value)
        if day is not None:
            parsed = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            parsed = parse_datetime(value)
            if parsed is None:
                return None
    except ValueError:
        return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def json_result(notifier: Notifier, status: int = 200, **payload) -> JsonResponse:
    """Builds the response shape shared by every view.

    success is False as soon as an error was reported or the status is an
    error status.
    """
    data = {
        "success": status < 400 and not notifier.has_errors,
        "messages": notifier.messages,
    }
    data.update(payload)
    return JsonResponse(data, status=status)


def format_amount(amount: Decimal) -> str:
    return f"{amount:,.2f}"
