"""Budget lifecycle and the mutations of a user's current budget.

A BudgetManager owns the in-memory view of one user's current budget: the
budget itself, its categories and sub-items, the period's date range and the
carry-over staged for the next period. Views build one per request and pass
it around explicitly.

Every public operation reports failures through the ``notify`` channel and
returns a falsy value instead of raising. The exceptions are
``initialize_budget`` and ``add_expense``, which re-raise persistence errors
after reporting them so the caller can react as well.
"""

import logging
import time
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from budgets import services
from budgets.alerts import get_budget_alerts
from budgets.calculations import (
    carry_over_amount,
    exceeds_budget,
    is_duplicate_tracking,
    remaining_budget,
    resolve_carry_flags,
    split_expense_amount,
    sub_allocation_exceeded,
    total_allocated,
    total_spent,
    unallocated_budget,
)
from budgets.data import BudgetItemData, CarryOverItem, SubBudgetItemData
from core.constants import BUDGET_PERIOD_VALUES, MAX_TAG_LENGTH
from core.exceptions import PersistenceError
from core.notifications import Notifier
from core.utils import DateRange, calculate_date_range, clean_amount, to_decimal
from expenses import services as expense_services
from income import services as income_services

logger = logging.getLogger(__name__)

NO_BUDGET = "no_budget"
ACTIVE = "active"
EXPIRED = "expired"

ITEM_UPDATE_FIELDS = frozenset(services.ITEM_FIELDS)
SUB_ITEM_UPDATE_FIELDS = frozenset(services.SUB_ITEM_FIELDS)


def clean_name(name, label: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(f"{label} name cannot be empty.")
    return name


def clean_optional_text(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def clean_tag(tag) -> str | None:
    tag = clean_optional_text(tag)
    if tag is not None and len(tag) > MAX_TAG_LENGTH:
        raise ValidationError(f"Tags can be at most {MAX_TAG_LENGTH} characters long.")
    return tag


def clean_item_updates(updates: dict) -> dict:
    """Validates a partial category update and applies the carry-flag rule."""
    unknown = set(updates) - ITEM_UPDATE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    cleaned = {}
    if "name" in updates:
        cleaned["name"] = clean_name(updates["name"], "Budget item")
    if "amount" in updates:
        cleaned["amount"] = clean_amount(updates["amount"])
    if "note" in updates:
        cleaned["note"] = clean_optional_text(updates["note"])
    if "tag" in updates:
        cleaned["tag"] = clean_tag(updates["tag"])
    if "deadline" in updates:
        deadline = updates["deadline"]
        if deadline is not None and not isinstance(deadline, datetime):
            raise ValidationError("Deadline must be a date and time.")
        cleaned["deadline"] = deadline
    if "is_impulse" in updates:
        cleaned["is_impulse"] = bool(updates["is_impulse"])

    is_continuous, is_recurring = resolve_carry_flags(
        updates.get("is_continuous"), updates.get("is_recurring")
    )
    if is_continuous is not None:
        cleaned["is_continuous"] = bool(is_continuous)
    if is_recurring is not None:
        cleaned["is_recurring"] = bool(is_recurring)
    return cleaned


def sub_item_from_model(sub_item) -> SubBudgetItemData:
    expense_count = getattr(sub_item, "expense_count", 0) or 0
    return SubBudgetItemData(
        id=sub_item.id,
        name=sub_item.name,
        amount=to_decimal(sub_item.amount),
        note=sub_item.note or None,
        tag=sub_item.tag or None,
        spent=to_decimal(getattr(sub_item, "expense_total", None)),
        has_expenses=expense_count > 0,
    )


def item_from_model(item, sub_items: Iterable[SubBudgetItemData] | None = None) -> BudgetItemData:
    """Builds a snapshot from a BudgetItem row, reading spent defensively."""
    if sub_items is None:
        sub_items = [sub_item_from_model(sub) for sub in item.sub_items.all()]
    return BudgetItemData(
        id=item.id,
        name=item.name,
        amount=to_decimal(item.amount),
        spent=to_decimal(item.spent),
        sub_items=tuple(sub_items),
        deadline=item.deadline,
        note=item.note or None,
        tag=item.tag or None,
        is_impulse=bool(item.is_impulse),
        is_continuous=bool(item.is_continuous),
        is_recurring=bool(item.is_recurring),
    )


class BudgetManager:
    """Owns the current budget of one user and every change made to it.

    Args:
        user: The authenticated user; every read and write is scoped to it.
        notify: Callable taking (title, message, tags) used for user-facing
            notifications. Defaults to a fresh Notifier.
        clock: Monotonic clock used to debounce load_budget.
        now: Returns the current aware datetime, used for expiry.
        debounce_seconds: Minimum time between two loads, defaults to the
            BUDGET_LOAD_DEBOUNCE_SECONDS setting.
    """

    def __init__(
        self,
        user,
        notify: Callable[..., None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = timezone.now,
        debounce_seconds: float | None = None,
    ):
        self.user = user
        self.notify = notify if notify is not None else Notifier()
        self.clock = clock
        self.now = now
        if debounce_seconds is None:
            debounce_seconds = getattr(settings, "BUDGET_LOAD_DEBOUNCE_SECONDS", 1.0)
        self.debounce_seconds = debounce_seconds

        self.current_budget_id = None
        self.period: str | None = None
        self.total_budget = Decimal(0)
        self.items: tuple[BudgetItemData, ...] = ()
        self.date_range: DateRange | None = None
        self.is_expired = False
        self.is_loading = False
        self.previous_remaining_budget = Decimal(0)
        self.carry_over_items: tuple[CarryOverItem, ...] = ()
        self._last_load_started: float | None = None

    # Derived values

    @property
    def status(self) -> str:
        if self.current_budget_id is None:
            return NO_BUDGET
        return EXPIRED if self.is_expired else ACTIVE

    def refresh_expiry(self) -> bool:
        """Recomputes the expired flag from the date range and the current time."""
        self.is_expired = self.date_range is not None and self.now() > self.date_range.end_date
        return self.is_expired

    def get_total_allocated(self) -> Decimal:
        return total_allocated(self.items)

    def get_total_spent(self) -> Decimal:
        return total_spent(self.items)

    def get_remaining_budget(self) -> Decimal:
        return remaining_budget(self.total_budget, self.items)

    def get_unallocated_budget(self) -> Decimal:
        return unallocated_budget(self.total_budget, self.items)

    def get_item(self, item_id) -> BudgetItemData | None:
        return next((item for item in self.items if item.id == item_id), None)

    def alerts(self) -> list[dict]:
        return get_budget_alerts(self.items, self.total_budget, self.now())

    def as_dict(self) -> dict:
        return {
            "budget_id": self.current_budget_id,
            "period": self.period,
            "status": self.status,
            "is_expired": self.is_expired,
            "start_date": self.date_range.start_date if self.date_range else None,
            "end_date": self.date_range.end_date if self.date_range else None,
            "total_budget": self.total_budget,
            "total_allocated": self.get_total_allocated(),
            "total_spent": self.get_total_spent(),
            "remaining_budget": self.get_remaining_budget(),
            "unallocated_budget": self.get_unallocated_budget(),
            "items": [item.as_dict() for item in self.items],
        }

    # State helpers

    def _report_error(self, title: str, message: str) -> None:
        self.notify(title, message, "danger")

    def _reject(self, title: str, error):
        if isinstance(error, ValidationError):
            message = " ".join(error.messages)
        else:
            message = str(error)
        self._report_error(title, message)
        return None

    def _apply_budget(self, budget, items: Iterable[BudgetItemData]) -> None:
        self.current_budget_id = budget.id
        self.period = budget.period
        self.total_budget = to_decimal(budget.total_budget)
        self.items = tuple(items)
        self.date_range = calculate_date_range(budget.created_at, budget.period)
        self.refresh_expiry()

    def _replace_item(self, updated: BudgetItemData) -> None:
        self.items = tuple(updated if item.id == updated.id else item for item in self.items)

    # Lifecycle

    def load_budget(self, force: bool = False) -> bool:
        """Loads the user's current budget, its categories and sub-items.

        Returns False without loading while another load is running or when
        the last load started less than debounce_seconds ago (unless force
        is set), when there is no budget, and when the database fails. In the
        last case the error is reported and the previous state is kept.
        """
        if self.user is None or not self.user.is_authenticated:
            return False
        if self.is_loading:
            logger.debug("Budget load already in progress, skipping")
            return False

        started = self.clock()
        if (
            not force
            and self._last_load_started is not None
            and started - self._last_load_started < self.debounce_seconds
        ):
            logger.debug("Budget loaded %.3fs ago, skipping", started - self._last_load_started)
            return False

        self._last_load_started = started
        self.is_loading = True
        try:
            budget = services.get_current_budget(self.user)
            if budget is None:
                logger.info(f"No budget found for user {self.user.pk}")
                return False
            items = [item_from_model(item) for item in services.get_budget_items(budget)]
        except PersistenceError as e:
            self._report_error("Error loading budget", e.message)
            return False
        finally:
            self.is_loading = False

        self._apply_budget(budget, items)
        logger.debug(f"Budget {budget.pk} loaded with {len(items)} items")
        return True

    def effective_starting_amount(self, amount) -> Decimal:
        """Amount of the next budget including the staged remaining budget."""
        amount = to_decimal(amount)
        if self.previous_remaining_budget > 0:
            return amount + self.previous_remaining_budget
        return amount

    def initialize_budget(self, period: str, amount) -> bool:
        """Creates a new budget and recreates the staged carry-over items.

        The amount is used as is: add the staged remaining budget with
        effective_starting_amount first. Persistence errors creating the
        budget are reported and re-raised; a failure recreating one carried
        item is reported and the other items are still recreated.
        """
        try:
            if period not in BUDGET_PERIOD_VALUES:
                raise ValidationError(f"Unknown budget period: {period}.")
            amount = clean_amount(amount)
        except ValidationError as e:
            self._reject("Error creating budget", e)
            return False

        self.is_loading = True
        try:
            try:
                budget = services.create_budget(self.user, period, amount)
            except PersistenceError as e:
                self._report_error("Error creating budget", e.message)
                raise

            self.previous_remaining_budget = Decimal(0)

            new_items = []
            for staged in self.carry_over_items:
                recreated = self._recreate_carry_over_item(budget.id, staged)
                if recreated is not None:
                    new_items.append(recreated)
            self.carry_over_items = ()

            self._apply_budget(budget, new_items)
        finally:
            self.is_loading = False

        logger.info(
            f"Budget {budget.pk} created for user {self.user.pk} "
            f"({period}, {amount}, {len(new_items)} carried items)"
        )
        return True

    def _recreate_carry_over_item(self, budget_id, staged: CarryOverItem) -> BudgetItemData | None:
        item = staged.item
        amount = carry_over_amount(item.amount, item.spent, staged.recurring)
        try:
            with transaction.atomic():
                new_item = services.create_budget_item(
                    budget_id,
                    item.name,
                    amount,
                    is_impulse=item.is_impulse,
                    is_continuous=item.is_continuous,
                    is_recurring=item.is_recurring,
                    note=item.note,
                    tag=item.tag,
                )
                new_sub_items = [
                    services.create_sub_item(
                        new_item.id, sub.name, sub.amount, note=sub.note, tag=sub.tag
                    )
                    for sub in item.sub_items
                ]
        except PersistenceError as e:
            logger.error(f"Failed to recreate budget item {item.name}: {e}")
            self._report_error(f"Failed to recreate {item.name}", e.message)
            return None
        return item_from_model(new_item, [sub_item_from_model(sub) for sub in new_sub_items])

    def create_new_budget_period(self) -> bool:
        """Reloads the current budget so its final totals can be staged."""
        if self.date_range is None or self.date_range.start_date is None:
            self._report_error(
                "Missing budget information",
                "Cannot create a new budget period without period information.",
            )
            return False
        return self.load_budget(force=True)

    def stage_carry_over(
        self,
        continuous_ids: Iterable = (),
        recurring_ids: Iterable = (),
        include_remaining: bool = False,
    ) -> tuple[CarryOverItem, ...]:
        """Stages the selected categories and remaining budget for the next period.

        Only categories flagged continuous (or recurring) can be selected as
        such; other ids are ignored.
        """
        continuous_ids = set(continuous_ids)
        recurring_ids = set(recurring_ids)

        staged = []
        for item in self.items:
            if item.id in continuous_ids and item.is_continuous:
                staged.append(CarryOverItem(item=item, recurring=False))
            elif item.id in recurring_ids and item.is_recurring:
                staged.append(CarryOverItem(item=item, recurring=True))
        self.carry_over_items = tuple(staged)

        remaining = self.get_remaining_budget()
        if include_remaining and remaining > 0:
            self.previous_remaining_budget = remaining
        else:
            self.previous_remaining_budget = Decimal(0)
        return self.carry_over_items

    def reset_budget(self) -> None:
        self.current_budget_id = None
        self.period = None
        self.total_budget = Decimal(0)
        self.items = ()
        self.date_range = None
        self.is_expired = False

    # Guards

    def _guard_target(self, item_id, sub_item_id=None):
        item = self.get_item(item_id)
        if item is None or sub_item_id is None:
            return item
        return item.get_sub_item(sub_item_id)

    def would_exceed_budget(self, item_id, amount, sub_item_id=None) -> bool:
        """Checks whether an expense would push the target above its allocation."""
        target = self._guard_target(item_id, sub_item_id)
        if target is None:
            return False
        return exceeds_budget(target.amount, target.spent, to_decimal(amount))

    def would_duplicate_tracking(self, item_id, amount, sub_item_id=None) -> bool:
        """Checks for a repeated overage on a target that already has expenses."""
        target = self._guard_target(item_id, sub_item_id)
        if target is None:
            return False
        return is_duplicate_tracking(target.amount, target.spent, to_decimal(amount))

    # Category mutations

    def add_budget_item(
        self,
        name: str,
        amount,
        is_impulse: bool = False,
        is_continuous: bool = False,
        is_recurring: bool = False,
        note: str | None = None,
        tag: str | None = None,
    ) -> BudgetItemData | None:
        try:
            name = clean_name(name, "Budget item")
            amount = clean_amount(amount)
            note = clean_optional_text(note)
            tag = clean_tag(tag)
        except ValidationError as e:
            return self._reject("Invalid budget item", e)
        if self.current_budget_id is None:
            return self._reject("Error adding budget item", "No current budget found")

        is_continuous, is_recurring = resolve_carry_flags(is_continuous, is_recurring)
        try:
            created = services.create_budget_item(
                self.current_budget_id,
                name,
                amount,
                is_impulse=bool(is_impulse),
                is_continuous=bool(is_continuous),
                is_recurring=bool(is_recurring),
                note=note,
                tag=tag,
            )
        except PersistenceError as e:
            self._report_error("Error adding budget item", e.message)
            return None

        item = item_from_model(created, ())
        self.items = self.items + (item,)
        return item

    def update_budget_item(self, item_id, **updates) -> BudgetItemData | None:
        item = self.get_item(item_id)
        if item is None:
            return self._reject("Error updating budget item", "Budget item not found.")
        try:
            updates = clean_item_updates(updates)
        except ValidationError as e:
            return self._reject("Error updating budget item", e)
        if "amount" in updates and sub_allocation_exceeded(
            updates["amount"], [sub.amount for sub in item.sub_items], 0
        ):
            return self._reject(
                "Sub-items exceed budget",
                f'Sub-items of "{item.name}" already total more than {updates["amount"]}.',
            )

        try:
            services.update_budget_item(self.user, item_id, **updates)
        except PersistenceError as e:
            self._report_error("Error updating budget item", e.message)
            return None

        updated = replace(item, **updates)
        self._replace_item(updated)
        return updated

    def update_item_deadline(self, item_id, deadline: datetime | None) -> BudgetItemData | None:
        return self.update_budget_item(item_id, deadline=deadline)

    def update_item_note_tag(self, item_id, note: str | None, tag: str | None) -> BudgetItemData | None:
        return self.update_budget_item(item_id, note=note, tag=tag)

    def mark_item_as_continuous(self, item_id, is_continuous: bool) -> BudgetItemData | None:
        updated = self.update_budget_item(item_id, is_continuous=is_continuous)
        if updated is not None:
            if is_continuous:
                self.notify("Item will continue to next period", "", "success")
            else:
                self.notify("Item will not continue to next period", "", "info")
        return updated

    def mark_item_as_recurring(self, item_id, is_recurring: bool) -> BudgetItemData | None:
        updated = self.update_budget_item(item_id, is_recurring=is_recurring)
        if updated is not None:
            if is_recurring:
                self.notify("Item will reset every period", "", "success")
            else:
                self.notify("Item will not reset next period", "", "info")
        return updated

    def delete_budget_item(self, item_id) -> bool:
        if self.get_item(item_id) is None:
            self._report_error("Error deleting budget item", "Budget item not found.")
            return False
        try:
            services.delete_budget_item(self.user, item_id)
        except PersistenceError as e:
            self._report_error("Error deleting budget item", e.message)
            return False
        self.items = tuple(item for item in self.items if item.id != item_id)
        return True

    # Sub-item mutations

    def add_sub_item(
        self,
        budget_item_id,
        name: str,
        amount,
        note: str | None = None,
        tag: str | None = None,
    ) -> SubBudgetItemData | None:
        try:
            name = clean_name(name, "Sub-item")
            amount = clean_amount(amount)
            note = clean_optional_text(note)
            tag = clean_tag(tag)
        except ValidationError as e:
            return self._reject("Invalid sub-item", e)

        parent = self.get_item(budget_item_id)
        if parent is None:
            return self._reject("Error adding sub-item", "Budget item not found.")
        if sub_allocation_exceeded(parent.amount, [sub.amount for sub in parent.sub_items], amount):
            return self._reject(
                "Sub-items exceed budget",
                f'Sub-items of "{parent.name}" would total more than its {parent.amount} allocation.',
            )

        try:
            created = services.create_sub_item(parent.id, name, amount, note=note, tag=tag)
        except PersistenceError as e:
            self._report_error("Error adding sub-item", e.message)
            return None

        sub_item = sub_item_from_model(created)
        self._replace_item(replace(parent, sub_items=parent.sub_items + (sub_item,)))
        return sub_item

    def update_sub_item(self, budget_item_id, sub_item_id, **updates) -> SubBudgetItemData | None:
        parent = self.get_item(budget_item_id)
        sub_item = parent.get_sub_item(sub_item_id) if parent is not None else None
        if sub_item is None:
            return self._reject("Error updating sub-item", "Sub-item not found.")

        try:
            unknown = set(updates) - SUB_ITEM_UPDATE_FIELDS
            if unknown:
                raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
            cleaned = {}
            if "name" in updates:
                cleaned["name"] = clean_name(updates["name"], "Sub-item")
            if "amount" in updates:
                cleaned["amount"] = clean_amount(updates["amount"])
            if "note" in updates:
                cleaned["note"] = clean_optional_text(updates["note"])
            if "tag" in updates:
                cleaned["tag"] = clean_tag(updates["tag"])
        except ValidationError as e:
            return self._reject("Error updating sub-item", e)

        if "amount" in cleaned:
            siblings = [sub.amount for sub in parent.sub_items if sub.id != sub_item_id]
            if sub_allocation_exceeded(parent.amount, siblings, cleaned["amount"]):
                return self._reject(
                    "Sub-items exceed budget",
                    f'Sub-items of "{parent.name}" would total more than its {parent.amount} allocation.',
                )

        try:
            services.update_sub_item(self.user, budget_item_id, sub_item_id, **cleaned)
        except PersistenceError as e:
            self._report_error("Error updating sub-item", e.message)
            return None

        updated = replace(sub_item, **cleaned)
        self._replace_item(
            replace(
                parent,
                sub_items=tuple(
                    updated if sub.id == sub_item_id else sub for sub in parent.sub_items
                ),
            )
        )
        return updated

    def delete_sub_item(self, budget_item_id, sub_item_id) -> bool:
        parent = self.get_item(budget_item_id)
        if parent is None or parent.get_sub_item(sub_item_id) is None:
            self._report_error("Error deleting sub-item", "Sub-item not found.")
            return False

        try:
            services.delete_sub_item(self.user, budget_item_id, sub_item_id)
        except PersistenceError as e:
            self._report_error("Error deleting sub-item", e.message)
            return False

        self._replace_item(
            replace(
                parent,
                sub_items=tuple(sub for sub in parent.sub_items if sub.id != sub_item_id),
            )
        )
        return True

    # Expenses

    def add_expense(self, item_id, amount, sub_item_ids: Iterable | None = None) -> BudgetItemData | None:
        """Records an expense and refreshes the category's spent amount.

        With several sub-items the amount is split in proportion to their
        allocations. The category's spent amount is recomputed from all of
        its expense rows and read back; it is never accumulated here.
        Persistence errors are reported and re-raised.
        """
        try:
            amount = clean_amount(amount)
        except ValidationError as e:
            return self._reject("Invalid Amount", e)
        if self.current_budget_id is None:
            return self._reject("Error adding expense", "No current budget found")

        item = self.get_item(item_id)
        if item is None:
            return self._reject("Error adding expense", "Selected budget item not found")

        sub_item_ids = list(dict.fromkeys(sub_item_ids or ()))
        selected = [item.get_sub_item(sub_item_id) for sub_item_id in sub_item_ids]
        if any(sub is None for sub in selected):
            return self._reject("Error adding expense", "Selected sub-item not found")

        try:
            if len(selected) > 1:
                shares = split_expense_amount(amount, [sub.amount for sub in selected])
                expense_services.add_expenses(
                    self.user,
                    item.id,
                    [(sub.id, share) for sub, share in zip(selected, shares)],
                )
            elif len(selected) == 1:
                expense_services.add_expense(self.user, item.id, amount, selected[0].id)
            else:
                expense_services.add_expense(self.user, item.id, amount)

            expense_services.update_budget_item_spent(item.id)
            spent = expense_services.get_budget_item_spent(item.id)
            sub_totals = expense_services.get_sub_item_totals(item.id) if item.sub_items else {}
        except PersistenceError as e:
            self._report_error("Error adding expense", e.message)
            raise

        sub_items = []
        for sub in item.sub_items:
            sub_spent, expense_count = sub_totals.get(sub.id, (sub.spent, 0))
            sub_items.append(
                replace(sub, spent=sub_spent, has_expenses=sub.has_expenses or expense_count > 0)
            )
        updated = replace(item, spent=spent, sub_items=tuple(sub_items))
        self._replace_item(updated)
        logger.debug(f"Expense of {amount} added to {item.name}, spent is now {spent}")
        return updated

    # Income

    def add_income_to_budget(self, name: str, amount):
        """Records an income entry and adds its amount to the current budget's total.

        Both writes happen in one transaction. Returns the new entry, or None
        when validation or persistence fails.
        """
        if self.current_budget_id is None:
            return self._reject("Error adding income", "No current budget found")
        try:
            amount = clean_amount(amount)
            with transaction.atomic():
                entry = income_services.create_income_entry(
                    self.user,
                    name,
                    amount,
                    budget_period_start=self.date_range.start_date,
                )
                total = services.increase_budget_total(
                    self.user, self.current_budget_id, amount
                )
        except ValidationError as e:
            return self._reject("Invalid income entry", e)
        except PersistenceError as e:
            self._report_error("Error adding income", e.message)
            return None

        self.total_budget = to_decimal(total)
        logger.info(f"Income {entry.pk} of {amount} added to budget {self.current_budget_id}")
        return entry
