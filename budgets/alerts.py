from datetime import datetime
from decimal import Decimal

from budgets.calculations import spent_percentage, total_spent
from core.constants import (
    DEADLINE_ALERT_DAYS,
    DEADLINE_LOW_USAGE_THRESHOLD,
    ITEM_CRITICAL_THRESHOLD,
    ITEM_EXCEEDED_THRESHOLD,
    ITEM_WARNING_THRESHOLD,
    TOTAL_CRITICAL_THRESHOLD,
    TOTAL_WARNING_THRESHOLD,
)
from core.utils import days_between


def _alert(alert_id, alert_type, icon, title, message, item_id, percentage) -> dict:
    return {
        "id": alert_id,
        "type": alert_type,
        "icon": icon,
        "title": title,
        "message": message,
        "item_id": item_id,
        "percentage": round(float(percentage), 1),
    }


def get_budget_alerts(items, total_budget, now: datetime) -> list[dict]:
    """Generate budget alerts based on spending patterns.

    Args:
        items: Budget item snapshots with amount, spent, name, id and deadline.
        total_budget: The total amount of the budget.
        now (datetime): The current time, used for deadline alerts.

    Returns:
        list[dict]: Alert dictionaries with id, type, icon, title, message, item_id and percentage.
    """
    alerts = []

    for item in items:
        percentage = spent_percentage(item.amount, item.spent)

        if percentage >= ITEM_EXCEEDED_THRESHOLD:
            over = (Decimal(item.spent) - Decimal(item.amount)) / Decimal(item.amount) * 100
            alerts.append(
                _alert(
                    f"{item.id}-exceeded",
                    "danger",
                    "exclamation-circle",
                    "Budget Exceeded",
                    f'You\'ve exceeded your budget for "{item.name}" by {over:.1f}%',
                    item.id,
                    percentage,
                )
            )
        elif percentage >= ITEM_CRITICAL_THRESHOLD:
            alerts.append(
                _alert(
                    f"{item.id}-critical",
                    "danger",
                    "exclamation-circle",
                    "Critical Budget Alert",
                    f'You\'ve used {percentage:.1f}% of your budget for "{item.name}"',
                    item.id,
                    percentage,
                )
            )
        elif percentage >= ITEM_WARNING_THRESHOLD:
            alerts.append(
                _alert(
                    f"{item.id}-warning",
                    "warning",
                    "exclamation-triangle",
                    "Budget Warning",
                    f'You\'ve used {percentage:.1f}% of your budget for "{item.name}"',
                    item.id,
                    percentage,
                )
            )

        if item.deadline is not None:
            days_left = days_between(now, item.deadline)
            if (
                0 < days_left <= DEADLINE_ALERT_DAYS
                and percentage < DEADLINE_LOW_USAGE_THRESHOLD
            ):
                alerts.append(
                    _alert(
                        f"{item.id}-deadline",
                        "info",
                        "info-circle",
                        "Deadline Approaching",
                        f'"{item.name}" deadline is in {days_left} day(s) and you\'ve only used {percentage:.1f}% of the budget',
                        item.id,
                        percentage,
                    )
                )

    total_percentage = spent_percentage(total_budget, total_spent(items))

    if total_percentage >= TOTAL_CRITICAL_THRESHOLD:
        alerts.append(
            _alert(
                "total-critical",
                "danger",
                "exclamation-circle",
                "Total Budget Critical",
                f"You've used {total_percentage:.1f}% of your total budget",
                "total",
                total_percentage,
            )
        )
    elif total_percentage >= TOTAL_WARNING_THRESHOLD:
        alerts.append(
            _alert(
                "total-warning",
                "warning",
                "exclamation-triangle",
                "Total Budget Warning",
                f"You've used {total_percentage:.1f}% of your total budget",
                "total",
                total_percentage,
            )
        )

    return alerts
