from django.contrib.auth.decorators import login_required
from django.core.handlers.wsgi import WSGIRequest
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from budgets.data import BudgetItemData
from budgets.manager import BudgetManager
from budgets.views import get_budget_manager
from core.constants import COLOR_MAP, TAG_COLORS
from core.exceptions import PersistenceError
from core.views import json_result
from income.services import get_total_income


def get_category_performance(items: tuple[BudgetItemData, ...]) -> list[dict]:
    """Returns the categories sorted by how much of their allocation is used."""
    performance = [
        {
            "id": item.id,
            "name": item.name,
            "amount": item.amount,
            "spent": item.spent,
            "remaining": item.remaining,
            "percentage_used": item.percentage_used,
            "is_over_budget": item.is_over_budget,
            "status_color": item.status_color,
        }
        for item in items
    ]
    performance.sort(key=lambda entry: (entry["is_over_budget"], entry["percentage_used"]), reverse=True)
    return performance


def get_overview(manager: BudgetManager) -> dict:
    date_range = manager.date_range
    return {
        "period": manager.period,
        "status": manager.status,
        "is_expired": manager.is_expired,
        "start_date": date_range.start_date if date_range else None,
        "end_date": date_range.end_date if date_range else None,
        "days_left": date_range.days_left(manager.now()) if date_range else 0,
        "total_budget": manager.total_budget,
        "total_allocated": manager.get_total_allocated(),
        "total_spent": manager.get_total_spent(),
        "remaining_budget": manager.get_remaining_budget(),
        "unallocated_budget": manager.get_unallocated_budget(),
        "is_over_budget": manager.get_remaining_budget() < 0,
        "total_items": len(manager.items),
    }


# Create your views here.
@login_required
@require_http_methods(["GET"])
def dashboard_view(request: WSGIRequest) -> JsonResponse:
    manager, notifier = get_budget_manager(request)

    try:
        total_income = get_total_income(request.user)
    except PersistenceError as e:
        notifier.error("Error loading income", e.message)
        total_income = None

    categories = get_category_performance(manager.items)
    return json_result(
        notifier,
        overview=get_overview(manager),
        total_income=total_income,
        top_categories=categories[:3],
        categories=categories,
        alerts=manager.alerts(),
    )


@login_required
@require_http_methods(["GET"])
def spending_by_category_chart_data(request: WSGIRequest) -> JsonResponse:
    manager, _ = get_budget_manager(request)
    spending = sorted(
        (item for item in manager.items if item.spent > 0),
        key=lambda item: item.spent,
        reverse=True,
    )
    data = {
        "labels": [item.name for item in spending],
        "datasets": [
            {
                "data": [float(item.spent) for item in spending],
                "backgroundColor": [
                    COLOR_MAP[TAG_COLORS.get(item.tag, "secondary")] for item in spending
                ],
            }
        ],
    }
    return JsonResponse(data)
