"""Database access for budgets, budget items and sub-items.

Every function is scoped to the given user and turns database failures into
PersistenceError with a message that can be shown as is.
"""

import logging
from decimal import Decimal

from django.contrib.auth.base_user import AbstractBaseUser
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from django.db.models import Count, F, Prefetch, Sum

from budgets.models import Budget, BudgetItem, SubBudgetItem
from core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

ITEM_FIELDS = (
    "name",
    "amount",
    "deadline",
    "note",
    "tag",
    "is_impulse",
    "is_continuous",
    "is_recurring",
)
SUB_ITEM_FIELDS = ("name", "amount", "note", "tag")


def create_budget(
    user: AbstractBaseUser | AnonymousUser, period: str, total_budget: Decimal
) -> Budget:
    try:
        return Budget.objects.create(user=user, period=period, total_budget=total_budget)
    except DatabaseError as e:
        logger.error(f"Error creating budget: {e}")
        raise PersistenceError(
            "Could not create the new budget. Please try again."
        ) from e


def get_current_budget(user: AbstractBaseUser | AnonymousUser) -> Budget | None:
    """Returns the most recently created budget of the user, or None."""
    try:
        return Budget.objects.filter(user=user).order_by("-created_at", "-id").first()
    except DatabaseError as e:
        logger.error(f"Error getting current budget: {e}")
        raise PersistenceError(
            "Could not retrieve budget information. Please try again."
        ) from e


def get_budget_history(user: AbstractBaseUser | AnonymousUser) -> list[Budget]:
    """Returns every budget of the user, newest first.

    Each budget is annotated with ``total_spent`` and ``item_count`` over its
    categories.
    """
    try:
        return list(
            Budget.objects.filter(user=user)
            .annotate(total_spent=Sum("items__spent"), item_count=Count("items"))
            .order_by("-created_at", "-id")
        )
    except DatabaseError as e:
        logger.error(f"Error getting budget history: {e}")
        raise PersistenceError(
            "Could not retrieve previous budgets. Please try again."
        ) from e


def increase_budget_total(
    user: AbstractBaseUser | AnonymousUser, budget_id, amount: Decimal
) -> Decimal:
    """Adds amount to a budget's total in the database and returns the new total."""
    try:
        updated = Budget.objects.filter(id=budget_id, user=user).update(
            total_budget=F("total_budget") + amount
        )
        if not updated:
            raise PersistenceError(
                "Budget not found or you don't have permission to change it."
            )
        return (
            Budget.objects.filter(id=budget_id)
            .values_list("total_budget", flat=True)
            .get()
        )
    except DatabaseError as e:
        logger.error(f"Error increasing total of budget {budget_id}: {e}")
        raise PersistenceError("Could not update the budget total.") from e


def get_budget_items(budget: Budget) -> list[BudgetItem]:
    """Fetches the categories of a budget with their sub-items.

    Each sub-item is annotated with ``expense_total`` and ``expense_count``
    computed from its expense rows.
    """
    sub_items = SubBudgetItem.objects.annotate(
        expense_total=Sum("expenses__amount"),
        expense_count=Count("expenses"),
    ).order_by("created_at", "id")
    try:
        return list(
            BudgetItem.objects.filter(budget=budget)
            .order_by("created_at", "id")
            .prefetch_related(Prefetch("sub_items", queryset=sub_items))
        )
    except DatabaseError as e:
        logger.error(f"Error getting budget items for budget {budget.pk}: {e}")
        raise PersistenceError(f"Failed to get budget items: {e}") from e


def get_budget_item(user: AbstractBaseUser | AnonymousUser, item_id) -> BudgetItem:
    try:
        return BudgetItem.objects.get(id=item_id, budget__user=user)
    except BudgetItem.DoesNotExist as e:
        raise PersistenceError(
            "Budget item not found or you don't have permission to change it."
        ) from e
    except (DatabaseError, ValueError) as e:
        logger.error(f"Error getting budget item {item_id}: {e}")
        raise PersistenceError(f"Failed to get budget item: {e}") from e


def create_budget_item(
    budget_id,
    name: str,
    amount: Decimal,
    is_impulse: bool = False,
    is_continuous: bool = False,
    is_recurring: bool = False,
    note: str | None = None,
    tag: str | None = None,
) -> BudgetItem:
    try:
        return BudgetItem.objects.create(
            budget_id=budget_id,
            name=name,
            amount=amount,
            spent=0,
            is_impulse=is_impulse,
            is_continuous=is_continuous,
            is_recurring=is_recurring,
            note=note,
            tag=tag,
        )
    except DatabaseError as e:
        logger.error(f"Error creating budget item {name}: {e}")
        raise PersistenceError(f"Failed to create budget item: {e}") from e


def update_budget_item(
    user: AbstractBaseUser | AnonymousUser, item_id, **updates
) -> BudgetItem:
    item = get_budget_item(user, item_id)
    for field_name, value in updates.items():
        if field_name not in ITEM_FIELDS:
            raise ValueError(f"Unknown budget item field: {field_name}")
        setattr(item, field_name, value)
    try:
        item.save()
    except DatabaseError as e:
        logger.error(f"Error updating budget item {item_id}: {e}")
        raise PersistenceError(f"Failed to update budget item: {e}") from e
    return item


def delete_budget_item(user: AbstractBaseUser | AnonymousUser, item_id) -> None:
    item = get_budget_item(user, item_id)
    try:
        item.delete()
    except DatabaseError as e:
        logger.error(f"Error deleting budget item {item_id}: {e}")
        raise PersistenceError(f"Failed to delete budget item: {e}") from e


def create_sub_item(
    budget_item_id,
    name: str,
    amount: Decimal,
    note: str | None = None,
    tag: str | None = None,
) -> SubBudgetItem:
    try:
        return SubBudgetItem.objects.create(
            budget_item_id=budget_item_id, name=name, amount=amount, note=note, tag=tag
        )
    except DatabaseError as e:
        logger.error(f"Error creating sub-item {name}: {e}")
        raise PersistenceError(f"Failed to create sub-item: {e}") from e


def get_sub_item(
    user: AbstractBaseUser | AnonymousUser, budget_item_id, sub_item_id
) -> SubBudgetItem:
    try:
        return SubBudgetItem.objects.get(
            id=sub_item_id,
            budget_item_id=budget_item_id,
            budget_item__budget__user=user,
        )
    except SubBudgetItem.DoesNotExist as e:
        raise PersistenceError(
            "Sub-item not found or you don't have permission to change it."
        ) from e
    except (DatabaseError, ValueError) as e:
        logger.error(f"Error getting sub-item {sub_item_id}: {e}")
        raise PersistenceError(f"Failed to get sub-item: {e}") from e


def update_sub_item(
    user: AbstractBaseUser | AnonymousUser, budget_item_id, sub_item_id, **updates
) -> SubBudgetItem:
    sub_item = get_sub_item(user, budget_item_id, sub_item_id)
    for field_name, value in updates.items():
        if field_name not in SUB_ITEM_FIELDS:
            raise ValueError(f"Unknown sub-item field: {field_name}")
        setattr(sub_item, field_name, value)
    try:
        sub_item.save()
    except DatabaseError as e:
        logger.error(f"Error updating sub-item {sub_item_id}: {e}")
        raise PersistenceError(f"Failed to update sub-item: {e}") from e
    return sub_item


def delete_sub_item(
    user: AbstractBaseUser | AnonymousUser, budget_item_id, sub_item_id
) -> None:
    sub_item = get_sub_item(user, budget_item_id, sub_item_id)
    try:
        sub_item.delete()
    except DatabaseError as e:
        logger.error(f"Error deleting sub-item {sub_item_id}: {e}")
        raise PersistenceError(f"Failed to delete sub-item: {e}") from e
