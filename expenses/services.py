"""Expense rows and the recomputation of a category's spent amount."""

import logging
from decimal import Decimal

from django.contrib.auth.base_user import AbstractBaseUser
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError, transaction
from django.db.models import Count, Sum

from budgets.models import BudgetItem, SubBudgetItem
from core.exceptions import PersistenceError
from core.utils import to_decimal
from expenses.models import Expense

logger = logging.getLogger(__name__)


def add_expense(
    user: AbstractBaseUser | AnonymousUser,
    budget_item_id,
    amount: Decimal,
    sub_item_id=None,
) -> Expense:
    try:
        return Expense.objects.create(
            user=user,
            budget_item_id=budget_item_id,
            sub_item_id=sub_item_id,
            amount=amount,
        )
    except DatabaseError as e:
        logger.error(f"Error adding expense to budget item {budget_item_id}: {e}")
        raise PersistenceError("Could not add expense due to a database error.") from e


def add_expenses(
    user: AbstractBaseUser | AnonymousUser,
    budget_item_id,
    sub_item_amounts: list[tuple[int, Decimal]],
) -> list[Expense]:
    """Adds one expense row per (sub_item_id, amount) pair, all or nothing."""
    expenses = [
        Expense(
            user=user,
            budget_item_id=budget_item_id,
            sub_item_id=sub_item_id,
            amount=amount,
        )
        for sub_item_id, amount in sub_item_amounts
    ]
    try:
        with transaction.atomic():
            return Expense.objects.bulk_create(expenses)
    except DatabaseError as e:
        logger.error(f"Error adding multiple expenses to {budget_item_id}: {e}")
        raise PersistenceError(f"Error adding expenses: {e}") from e


def update_budget_item_spent(budget_item_id) -> Decimal:
    """Recomputes a category's spent amount from all of its expense rows.

    This is the only place spent is written; callers re-read the stored value
    instead of accumulating it themselves.
    """
    try:
        with transaction.atomic():
            total = Expense.objects.filter(budget_item_id=budget_item_id).aggregate(
                total=Sum("amount")
            )["total"]
            if total is None:
                total = Decimal(0)
            BudgetItem.objects.filter(id=budget_item_id).update(spent=total)
    except DatabaseError as e:
        logger.error(f"Error updating spent amount of {budget_item_id}: {e}")
        raise PersistenceError("Could not update spent amount.") from e
    return total


def get_budget_item_spent(budget_item_id) -> Decimal:
    try:
        spent = (
            BudgetItem.objects.filter(id=budget_item_id)
            .values_list("spent", flat=True)
            .get()
        )
    except (BudgetItem.DoesNotExist, DatabaseError) as e:
        logger.error(f"Error fetching spent amount of {budget_item_id}: {e}")
        raise PersistenceError("Could not fetch updated item information.") from e
    return to_decimal(spent)


def get_sub_item_totals(budget_item_id) -> dict[int, tuple[Decimal, int]]:
    """Returns {sub_item_id: (spent, number of expenses)} for a category."""
    try:
        rows = (
            SubBudgetItem.objects.filter(budget_item_id=budget_item_id)
            .annotate(expense_total=Sum("expenses__amount"), expense_count=Count("expenses"))
            .values_list("id", "expense_total", "expense_count")
        )
        return {
            sub_item_id: (to_decimal(total), count) for sub_item_id, total, count in rows
        }
    except DatabaseError as e:
        logger.error(f"Error fetching sub-item totals of {budget_item_id}: {e}")
        raise PersistenceError("Could not fetch updated item information.") from e
