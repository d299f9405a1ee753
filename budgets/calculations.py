"""Pure calculations over budget items.

Every function here takes plain values or objects exposing ``amount`` and
``spent`` attributes, so they work the same on model instances and on the
in-memory ``BudgetItemData`` snapshots.
"""

from decimal import Decimal
from typing import Iterable, Sequence

from core.utils import quantize_amount


def total_allocated(items: Iterable) -> Decimal:
    return sum((Decimal(item.amount) for item in items), Decimal(0))


def total_spent(items: Iterable) -> Decimal:
    return sum((Decimal(item.spent) for item in items), Decimal(0))


def remaining_budget(total_budget, items: Iterable) -> Decimal:
    """Returns what is left of the total budget; negative means over budget."""
    return Decimal(total_budget) - total_spent(items)


def unallocated_budget(total_budget, items: Iterable) -> Decimal:
    return Decimal(total_budget) - total_allocated(items)


def item_remaining(item) -> Decimal:
    return Decimal(item.amount) - Decimal(item.spent)


def is_over_budget(item) -> bool:
    return Decimal(item.spent) > Decimal(item.amount)


def spent_percentage(amount, spent) -> Decimal:
    """Percentage of an allocation already spent, 0 for an empty allocation."""
    amount = Decimal(amount)
    if amount <= 0:
        return Decimal(0)
    return Decimal(spent) / amount * 100


def exceeds_budget(amount, spent, candidate) -> bool:
    """Checks whether spending candidate would push spent above amount."""
    return Decimal(candidate) > Decimal(amount) - Decimal(spent)


def is_duplicate_tracking(amount, spent, candidate) -> bool:
    """Checks for a repeated overage on an allocation that already has expenses.

    Same inequality as exceeds_budget, but only once something was spent.
    """
    return Decimal(spent) > 0 and exceeds_budget(amount, spent, candidate)


def resolve_carry_flags(is_continuous, is_recurring) -> tuple:
    """Keeps the continuous and recurring flags mutually exclusive.

    Setting one of them to True forces the other to False; when both are
    True, continuous wins. None means "not being changed" and is kept.
    """
    if is_continuous:
        return True, False
    if is_recurring:
        return False, True
    return is_continuous, is_recurring


def carry_over_amount(amount, spent, recurring: bool) -> Decimal:
    """Amount a category starts with in the next period.

    Recurring categories start over at their full amount; continuous ones
    keep only what was left, never less than zero.
    """
    amount = Decimal(amount)
    if recurring:
        return amount
    return max(Decimal(0), amount - Decimal(spent))


def sub_allocation_exceeded(parent_amount, sub_amounts: Iterable, candidate) -> bool:
    """Checks whether adding candidate would over-allocate the parent category."""
    allocated = sum((Decimal(amount) for amount in sub_amounts), Decimal(0))
    return allocated + Decimal(candidate) > Decimal(parent_amount)


def split_expense_amount(amount, weights: Sequence) -> list[Decimal]:
    """Splits an expense across sub-items proportionally to their weights.

    Shares are rounded to cents and the rounding remainder goes to the last
    share, so the shares always add up to amount. With no positive weight
    the amount is split equally.
    """
    if not weights:
        return []

    amount = Decimal(amount)
    weights = [Decimal(weight) for weight in weights]
    total_weight = sum(weights, Decimal(0))

    if total_weight > 0:
        raw_shares = [amount * weight / total_weight for weight in weights]
    else:
        raw_shares = [amount / len(weights) for _ in weights]

    shares = [quantize_amount(share) for share in raw_shares[:-1]]
    shares.append(amount - sum(shares, Decimal(0)))
    return shares
