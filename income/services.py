import logging
from datetime import datetime
from decimal import Decimal

from django.contrib.auth.base_user import AbstractBaseUser
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.db import DatabaseError, models
from django.utils import timezone

from core.exceptions import PersistenceError
from core.utils import clean_amount
from income.models import IncomeEntry

logger = logging.getLogger(__name__)


def get_income_entries(
    user: AbstractBaseUser | AnonymousUser,
    budget_period_start: datetime | None = None,
) -> list[IncomeEntry]:
    """Returns the income entries of a user, newest first.

    Args:
        user (AbstractBaseUser | AnonymousUser): The owner of the entries.
        budget_period_start (datetime, optional): Only entries recorded for this period.
    """
    entries = IncomeEntry.objects.filter(user=user)
    if budget_period_start is not None:
        entries = entries.filter(budget_period_start=budget_period_start)
    try:
        return list(entries.order_by("-created_at", "-id"))
    except DatabaseError as e:
        logger.error(f"Error getting income entries: {e}")
        raise PersistenceError("Could not retrieve income entries.") from e


def create_income_entry(
    user: AbstractBaseUser | AnonymousUser,
    name: str,
    amount,
    budget_period_start: datetime | None = None,
) -> IncomeEntry:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Income name cannot be empty.")
    amount = clean_amount(amount)

    try:
        return IncomeEntry.objects.create(
            user=user,
            name=name,
            amount=amount,
            budget_period_start=budget_period_start or timezone.now(),
        )
    except DatabaseError as e:
        logger.error(f"Error creating income entry: {e}")
        raise PersistenceError(
            "Could not create the income entry. Please try again."
        ) from e


def delete_income_entry(user: AbstractBaseUser | AnonymousUser, entry_id) -> None:
    try:
        deleted, _ = IncomeEntry.objects.filter(id=entry_id, user=user).delete()
    except (DatabaseError, ValueError) as e:
        logger.error(f"Error deleting income entry {entry_id}: {e}")
        raise PersistenceError(
            "Could not delete the income entry. Please try again."
        ) from e
    if not deleted:
        raise PersistenceError(
            "Income entry not found or you don't have permission to delete it."
        )


def get_total_income(
    user: AbstractBaseUser | AnonymousUser,
    budget_period_start: datetime | None = None,
) -> Decimal:
    """Returns the sum of the user's income entries, optionally for one period."""
    entries = IncomeEntry.objects.filter(user=user)
    if budget_period_start is not None:
        entries = entries.filter(budget_period_start=budget_period_start)
    try:
        total_amount = entries.aggregate(total=models.Sum("amount"))["total"]
    except DatabaseError as e:
        logger.error(f"Error calculating total income: {e}")
        raise PersistenceError("Could not retrieve income entries.") from e

    if total_amount is None:
        return Decimal(0)

    return total_amount
