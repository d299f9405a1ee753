import logging
from datetime import datetime
from decimal import Decimal

from django.contrib.auth.base_user import AbstractBaseUser
from django.contrib.auth.decorators import login_required
from django.contrib.auth.models import AnonymousUser
from django.core.handlers.wsgi import WSGIRequest
from django.core.paginator import EmptyPage, Page, PageNotAnInteger, Paginator
from django.db.models import Sum
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from budgets.views import budget_result, get_budget_manager
from core.exceptions import PersistenceError
from core.notifications import Notifier
from core.utils import to_decimal
from core.views import format_amount, json_result, parse_bool, parse_id, parse_id_list, parse_instant
from expenses.models import Expense

logger = logging.getLogger(__name__)

BUDGET_EXCEEDED = "budget_exceeded"
DUPLICATE_TRACKING = "duplicate_tracking"


class ExpenseData:
    def __init__(
        self,
        id,
        created_at,
        amount,
        budget_item_id,
        budget_item_name,
        sub_item_id=None,
        sub_item_name=None,
    ):
        self.id = id
        self.created_at = created_at
        self.amount = amount
        self.budget_item_id = budget_item_id
        self.budget_item_name = budget_item_name
        self.sub_item_id = sub_item_id
        self.sub_item_name = sub_item_name

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "amount": self.amount,
            "budget_item_id": self.budget_item_id,
            "budget_item_name": self.budget_item_name,
            "sub_item_id": self.sub_item_id,
            "sub_item_name": self.sub_item_name,
        }

    def __str__(self) -> str:
        return f"ExpenseData(id={self.id}, created_at={self.created_at}, amount={self.amount}, budget_item_name={self.budget_item_name}, sub_item_name={self.sub_item_name})"


def get_expenses_data(
    user: AbstractBaseUser | AnonymousUser,
    page_number: int = 1,
    page_size: int = 20,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    budget_item_id: int | None = None,
) -> tuple[list[ExpenseData], Page, Decimal]:
    """Fetches and returns the expense history of the given user.

    Args:
        user (AbstractBaseUser | AnonymousUser): The user whose expenses are to be fetched.
        page_number (int): The page number for pagination (default is 1).
        page_size (int): The number of expenses per page (default is 20).
        start_date (datetime, optional): Filter expenses from this date onwards.
        end_date (datetime, optional): Filter expenses up to this date.
        budget_item_id (int, optional): Filter expenses by this budget item.

    Returns:
        tuple: The ExpenseData objects of the page, the Page object for pagination
               and the total amount of all filtered expenses.
    """
    expenses = Expense.objects.filter(user=user).select_related("budget_item", "sub_item")

    # Apply filters if provided
    if start_date:
        expenses = expenses.filter(created_at__gte=start_date)
    if end_date:
        expenses = expenses.filter(created_at__lte=end_date)
    if budget_item_id:
        expenses = expenses.filter(budget_item_id=budget_item_id)

    expenses = expenses.order_by("-created_at", "-id").values(
        "id",
        "created_at",
        "amount",
        "budget_item_id",
        "budget_item__name",
        "sub_item_id",
        "sub_item__name",
    )

    total_amount = to_decimal(expenses.aggregate(total=Sum("amount"))["total"])

    paginator = Paginator(expenses, page_size)

    try:
        page_obj = paginator.page(page_number)
    except PageNotAnInteger:
        # If page is not an integer, deliver first page
        page_obj = paginator.page(1)
    except EmptyPage:
        # If page is out of range, deliver last page
        page_obj = paginator.page(paginator.num_pages)

    expense_data = [
        ExpenseData(
            id=expense["id"],
            created_at=expense["created_at"],
            amount=expense["amount"],
            budget_item_id=expense["budget_item_id"],
            budget_item_name=expense["budget_item__name"],
            sub_item_id=expense["sub_item_id"],
            sub_item_name=expense["sub_item__name"],
        )
        for expense in page_obj
    ]

    return expense_data, page_obj, total_amount


def expenses_history(request: WSGIRequest) -> JsonResponse:
    page_number = request.GET.get("page", 1)
    expenses, page_obj, total_amount = get_expenses_data(
        request.user,
        page_number,
        page_size=25,
        start_date=parse_instant(request.GET.get("start_date")),
        end_date=parse_instant(request.GET.get("end_date"), end_of_day=True),
        budget_item_id=parse_id(request.GET.get("budget_item")),
    )
    return json_result(
        Notifier(),
        expenses=[expense.as_dict() for expense in expenses],
        total_amount=total_amount,
        page=page_obj.number,
        num_pages=page_obj.paginator.num_pages,
        has_next=page_obj.has_next(),
        has_previous=page_obj.has_previous(),
    )


# Create your views here.
@login_required
@require_http_methods(["GET", "POST"])
def expenses_view(request: WSGIRequest) -> JsonResponse:
    """Lists the expense history, or records a new expense.

    A new expense that would overrun its target's allocation is not written;
    the response asks for confirmation instead, and the client repeats the
    request with confirm=1 to record it anyway.
    """
    if request.method == "GET":
        return expenses_history(request)

    manager, notifier = get_budget_manager(request)

    amount = to_decimal(request.POST.get("amount", ""))
    item_id = parse_id(request.POST.get("item_id"))
    sub_item_ids = parse_id_list(request.POST.getlist("sub_item_ids"))
    new_item_name = request.POST.get("new_item_name", "").strip()
    confirmed = parse_bool(request.POST.get("confirm"))

    if item_id is None and new_item_name:
        # An impulse item starts with the expense amount as its allocation
        item = manager.add_budget_item(new_item_name, amount, is_impulse=True)
        if item is None:
            return budget_result(manager, notifier, 400)
        item_id = item.id

    item = manager.get_item(item_id)
    if item is None:
        notifier.error("Error adding expense", "Please select a budget item.")
        return budget_result(manager, notifier, 400)

    guard_sub_item_id = sub_item_ids[0] if len(sub_item_ids) == 1 else None
    target = item.get_sub_item(guard_sub_item_id) if guard_sub_item_id else item

    if not confirmed and amount > 0 and target is not None:
        target_name = target.name

        if manager.would_duplicate_tracking(item_id, amount, guard_sub_item_id):
            return json_result(
                notifier,
                409,
                confirm=DUPLICATE_TRACKING,
                message=(
                    f'You have already tracked expenses for "{target_name}". '
                    f"Adding {format_amount(amount)} will exceed its allocated budget. "
                    "Do you want to add it anyway?"
                ),
            )
        if manager.would_exceed_budget(item_id, amount, guard_sub_item_id):
            return json_result(
                notifier,
                409,
                confirm=BUDGET_EXCEEDED,
                message=(
                    f'Adding {format_amount(amount)} to "{target_name}" will exceed '
                    f"its remaining budget of {format_amount(target.amount - target.spent)}. "
                    "Do you want to add it anyway?"
                ),
            )

    try:
        updated = manager.add_expense(item_id, amount, sub_item_ids)
    except PersistenceError as e:
        logger.error(f"Error saving expense: {e}")
        return budget_result(manager, notifier, 500)

    if updated is None:
        return budget_result(manager, notifier, 400)

    notifier.success("Expense added successfully.", f"{format_amount(amount)} added to {updated.name}.")
    return budget_result(manager, notifier, 201, item=updated.as_dict())
