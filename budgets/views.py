import logging

from django.contrib.auth.decorators import login_required
from django.core.handlers.wsgi import WSGIRequest
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from budgets import services
from budgets.manager import ACTIVE, EXPIRED, BudgetManager
from core.constants import BUDGET_PERIODS, ITEM_TAGS
from core.exceptions import PersistenceError
from core.notifications import Notifier
from core.utils import calculate_date_range, to_decimal
from core.views import format_amount, json_result, parse_bool, parse_id, parse_id_list, parse_instant

logger = logging.getLogger(__name__)


def get_budget_manager(request: WSGIRequest) -> tuple[BudgetManager, Notifier]:
    """Builds a manager for the requesting user and loads the current budget."""
    notifier = Notifier()
    manager = BudgetManager(request.user, notify=notifier)
    manager.load_budget()
    return manager, notifier


def budget_result(
    manager: BudgetManager, notifier: Notifier, status: int = 200, **payload
) -> JsonResponse:
    return json_result(
        notifier,
        status,
        budget=manager.as_dict(),
        alerts=manager.alerts(),
        **payload,
    )


# Create your views here.
@login_required
@require_http_methods(["GET", "POST"])
def budget_view(request: WSGIRequest) -> JsonResponse:
    manager, notifier = get_budget_manager(request)

    if request.method == "POST":
        period = request.POST.get("period", "")
        amount = request.POST.get("amount", "")

        if any(not field for field in [period, amount]):
            notifier.error("Missing budget information", "Period and amount are required.")
            return budget_result(manager, notifier, 400)

        try:
            if not manager.initialize_budget(period, amount):
                return budget_result(manager, notifier, 400)
        except PersistenceError:
            return budget_result(manager, notifier, 500)

        notifier.success("Budget created successfully!")
        return budget_result(manager, notifier, 201)

    return budget_result(
        manager,
        notifier,
        periods=BUDGET_PERIODS,
        tags=ITEM_TAGS,
    )


@login_required
@require_http_methods(["POST"])
def new_period_view(request: WSGIRequest) -> JsonResponse:
    """Closes the current period and starts the next one.

    The selected continuous and recurring categories and, when asked for,
    the remaining budget are carried into the new budget.
    """
    manager, notifier = get_budget_manager(request)

    period = request.POST.get("period", "") or manager.period or ""
    amount = request.POST.get("amount", "")
    if any(not field for field in [period, amount]):
        notifier.error("Missing budget information", "Period and amount are required.")
        return budget_result(manager, notifier, 400)

    if not manager.create_new_budget_period():
        return budget_result(manager, notifier, 400)

    staged = manager.stage_carry_over(
        continuous_ids=parse_id_list(request.POST.getlist("continuous_ids")),
        recurring_ids=parse_id_list(request.POST.getlist("recurring_ids")),
        include_remaining=parse_bool(request.POST.get("include_remaining")),
    )
    carried_remaining = manager.previous_remaining_budget

    try:
        created = manager.initialize_budget(
            period, manager.effective_starting_amount(amount)
        )
    except PersistenceError:
        return budget_result(manager, notifier, 500)
    if not created:
        return budget_result(manager, notifier, 400)

    notifier.success(
        "New budget period started",
        f"Carried over {len(staged)} items and {carried_remaining} remaining budget.",
    )
    return budget_result(manager, notifier, 201,
        carried=[
            {"id": entry.item.id, "name": entry.item.name, "kind": entry.kind}
            for entry in staged
        ],
    )


@login_required
@require_http_methods(["POST"])
def budget_items_view(request: WSGIRequest) -> JsonResponse:
    manager, notifier = get_budget_manager(request)
    action = request.POST.get("action", "add")

    if action == "add":
        item = manager.add_budget_item(
            request.POST.get("name", ""),
            request.POST.get("amount", ""),
            is_impulse=parse_bool(request.POST.get("is_impulse")),
            is_continuous=parse_bool(request.POST.get("is_continuous")),
            is_recurring=parse_bool(request.POST.get("is_recurring")),
            note=request.POST.get("note"),
            tag=request.POST.get("tag"),
        )
        if item is None:
            return budget_result(manager, notifier, 400)
        notifier.success("Budget item added successfully.")
        return budget_result(manager, notifier, 201, item=item.as_dict())

    item_id = parse_id(request.POST.get("item_id"))
    if item_id is None:
        notifier.error("Missing budget item", "A budget item is required.")
        return budget_result(manager, notifier, 400)

    if action == "delete":
        if not manager.delete_budget_item(item_id):
            return budget_result(manager, notifier, 400)
        notifier.success("Budget item deleted successfully.")
        return budget_result(manager, notifier)

    if action == "edit":
        updates = {
            field_name: request.POST[field_name]
            for field_name in ("name", "amount", "note", "tag")
            if field_name in request.POST
        }
        item = manager.update_budget_item(item_id, **updates)
    elif action == "deadline":
        deadline_value = request.POST.get("deadline", "")
        deadline = parse_instant(deadline_value, end_of_day=True)
        if deadline_value and deadline is None:
            notifier.error("Error updating deadline", "Deadline must be a valid date.")
            return budget_result(manager, notifier, 400)
        item = manager.update_item_deadline(item_id, deadline)
    elif action == "note":
        item = manager.update_item_note_tag(
            item_id, request.POST.get("note"), request.POST.get("tag")
        )
    elif action == "continuous":
        item = manager.mark_item_as_continuous(item_id, parse_bool(request.POST.get("value")))
    elif action == "recurring":
        item = manager.mark_item_as_recurring(item_id, parse_bool(request.POST.get("value")))
    else:
        notifier.error("Unknown action", f"Unsupported action: {action}")
        return budget_result(manager, notifier, 400)

    if item is None:
        return budget_result(manager, notifier, 400)
    return budget_result(manager, notifier, item=item.as_dict())


@login_required
@require_http_methods(["POST"])
def sub_items_view(request: WSGIRequest, item_id: int) -> JsonResponse:
    manager, notifier = get_budget_manager(request)
    action = request.POST.get("action", "add")

    if action == "add":
        sub_item = manager.add_sub_item(
            item_id,
            request.POST.get("name", ""),
            request.POST.get("amount", ""),
            note=request.POST.get("note"),
            tag=request.POST.get("tag"),
        )
        if sub_item is None:
            return budget_result(manager, notifier, 400)
        notifier.success("Sub-item added", f"{sub_item.name} has been added successfully.")
        return budget_result(manager, notifier, 201, sub_item=sub_item.as_dict())

    sub_item_id = parse_id(request.POST.get("sub_item_id"))
    if sub_item_id is None:
        notifier.error("Missing sub-item", "A sub-item is required.")
        return budget_result(manager, notifier, 400)

    if action == "delete":
        if not manager.delete_sub_item(item_id, sub_item_id):
            return budget_result(manager, notifier, 400)
        notifier.success("Sub-item deleted", "The sub-item has been removed.")
        return budget_result(manager, notifier)

    if action == "edit":
        updates = {
            field_name: request.POST[field_name]
            for field_name in ("name", "amount", "note", "tag")
            if field_name in request.POST
        }
        sub_item = manager.update_sub_item(item_id, sub_item_id, **updates)
        if sub_item is None:
            return budget_result(manager, notifier, 400)
        notifier.success("Sub-item updated", "The sub-item has been updated successfully.")
        return budget_result(manager, notifier, sub_item=sub_item.as_dict())

    notifier.error("Unknown action", f"Unsupported action: {action}")
    return budget_result(manager, notifier, 400)


def get_budget_history_data(user, now) -> list[dict]:
    """Summarizes every budget of the user, newest first.

    Only the newest budget is current; the others are archived. The end date
    follows the same period rules as the current budget's date range.
    """
    history = []
    for index, budget in enumerate(services.get_budget_history(user)):
        date_range = calculate_date_range(budget.created_at, budget.period)
        total_budget = to_decimal(budget.total_budget)
        total_spent = to_decimal(budget.total_spent)
        if index > 0:
            status = "archived"
        elif date_range.contains(now):
            status = ACTIVE
        else:
            status = EXPIRED
        history.append(
            {
                "id": budget.id,
                "period": budget.period,
                "total_budget": total_budget,
                "total_spent": total_spent,
                "remaining_budget": total_budget - total_spent,
                "item_count": budget.item_count,
                "start_date": date_range.start_date,
                "end_date": date_range.end_date,
                "status": status,
            }
        )
    return history


@login_required
@require_http_methods(["GET"])
def budget_history_view(request: WSGIRequest) -> JsonResponse:
    notifier = Notifier()
    try:
        history = get_budget_history_data(request.user, timezone.now())
    except PersistenceError as e:
        notifier.error("Error loading previous budgets", e.message)
        return json_result(notifier, 500)
    return json_result(notifier, budgets=history)


@login_required
@require_http_methods(["POST"])
def add_income_view(request: WSGIRequest) -> JsonResponse:
    """Records extra income and adds it to the current budget's total."""
    manager, notifier = get_budget_manager(request)

    name = request.POST.get("name", "")
    amount = request.POST.get("amount", "")
    if any(not field.strip() for field in [name, amount]):
        notifier.error("Missing information", "Please enter both income name and amount.")
        return budget_result(manager, notifier, 400)

    entry = manager.add_income_to_budget(name, amount)
    if entry is None:
        return budget_result(manager, notifier, 400)

    notifier.success(
        "Income added successfully",
        f"{format_amount(entry.amount)} has been added to your current budget.",
    )
    return budget_result(manager, notifier, 201, income_entry_id=entry.id)
