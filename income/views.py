import logging

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.core.handlers.wsgi import WSGIRequest
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from core.exceptions import PersistenceError
from core.notifications import Notifier
from core.views import json_result, parse_instant
from income import services

logger = logging.getLogger(__name__)


def income_result(request: WSGIRequest, notifier: Notifier, status: int = 200, **payload) -> JsonResponse:
    budget_period_start = parse_instant(request.GET.get("budget_period_start"))
    try:
        entries = services.get_income_entries(request.user, budget_period_start)
        total_income = services.get_total_income(request.user, budget_period_start)
    except PersistenceError as e:
        notifier.error("Error loading income", e.message)
        return json_result(notifier, 500, **payload)

    return json_result(
        notifier,
        status,
        entries=[
            {
                "id": entry.id,
                "name": entry.name,
                "amount": entry.amount,
                "budget_period_start": entry.budget_period_start,
                "created_at": entry.created_at,
            }
            for entry in entries
        ],
        total_income=total_income,
        # The total income is only a suggestion for the next budget amount
        suggested_budget=total_income,
        **payload,
    )


# Create your views here.
@login_required
@require_http_methods(["GET", "POST"])
def income_view(request: WSGIRequest) -> JsonResponse:
    notifier = Notifier()

    if request.method == "POST":
        try:
            entry = services.create_income_entry(
                request.user,
                request.POST.get("name", ""),
                request.POST.get("amount", ""),
                budget_period_start=parse_instant(request.POST.get("budget_period_start")),
            )
        except ValidationError as e:
            notifier.error("Invalid income entry", " ".join(e.messages))
            return income_result(request, notifier, 400)
        except PersistenceError as e:
            notifier.error("Error adding income", e.message)
            return income_result(request, notifier, 500)

        notifier.success("Income added", f"{entry.name} has been added successfully.")
        return income_result(request, notifier, 201)

    return income_result(request, notifier)


@login_required
@require_http_methods(["POST"])
def delete_income_view(request: WSGIRequest, entry_id: int) -> JsonResponse:
    notifier = Notifier()
    try:
        services.delete_income_entry(request.user, entry_id)
    except PersistenceError as e:
        notifier.error("Error deleting income", e.message)
        return income_result(request, notifier, 404)

    notifier.success("Income deleted", "The income entry has been removed.")
    return income_result(request, notifier)
