from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from budgets.calculations import is_over_budget, item_remaining, spent_percentage


@dataclass(frozen=True)
class SubBudgetItemData:
    id: int
    name: str
    amount: Decimal
    note: Optional[str] = None
    tag: Optional[str] = None
    spent: Decimal = Decimal(0)
    has_expenses: bool = False

    @property
    def remaining(self) -> Decimal:
        return item_remaining(self)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "note": self.note,
            "tag": self.tag,
            "spent": self.spent,
            "has_expenses": self.has_expenses,
        }


@dataclass(frozen=True)
class BudgetItemData:
    """In-memory snapshot of a budget category and its sub-items.

    Snapshots are never changed in place; mutators build a new one with
    dataclasses.replace and swap it into the collection.
    """

    id: int
    name: str
    amount: Decimal
    spent: Decimal = Decimal(0)
    sub_items: tuple[SubBudgetItemData, ...] = field(default_factory=tuple)
    deadline: Optional[datetime] = None
    note: Optional[str] = None
    tag: Optional[str] = None
    is_impulse: bool = False
    is_continuous: bool = False
    is_recurring: bool = False

    @property
    def percentage(self) -> Decimal:
        return spent_percentage(self.amount, self.spent)

    @property
    def percentage_used(self) -> int:
        """Percentage of the allocation used, rounded and capped at 100 for display."""
        return min(round(self.percentage), 100)

    @property
    def remaining(self) -> Decimal:
        return item_remaining(self)

    @property
    def is_over_budget(self) -> bool:
        return is_over_budget(self)

    @property
    def status_color(self) -> str:
        if self.is_over_budget:
            return "danger"
        elif self.percentage_used >= 80:
            return "warning"
        elif self.percentage_used >= 60:
            return "success"
        else:
            return "primary"

    def get_sub_item(self, sub_item_id) -> Optional[SubBudgetItemData]:
        return next((sub for sub in self.sub_items if sub.id == sub_item_id), None)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "spent": self.spent,
            "remaining": self.remaining,
            "percentage_used": self.percentage_used,
            "is_over_budget": self.is_over_budget,
            "status_color": self.status_color,
            "deadline": self.deadline,
            "note": self.note,
            "tag": self.tag,
            "is_impulse": self.is_impulse,
            "is_continuous": self.is_continuous,
            "is_recurring": self.is_recurring,
            "sub_items": [sub.as_dict() for sub in self.sub_items],
        }

    def __str__(self) -> str:
        return f"BudgetItemData(name={self.name}, spent={self.spent}, amount={self.amount}, percentage_used={self.percentage_used}, remaining={self.remaining}, is_over_budget={self.is_over_budget}, status_color={self.status_color})"


@dataclass(frozen=True)
class CarryOverItem:
    """A category staged to be recreated in the next budget period."""

    item: BudgetItemData
    recurring: bool

    @property
    def kind(self) -> str:
        return "recurring" if self.recurring else "continuous"
