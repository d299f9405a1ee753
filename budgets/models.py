from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone

from budgets.calculations import resolve_carry_flags
from core.constants import BUDGET_PERIODS, MAX_TAG_LENGTH


# Create your models here.
class Budget(models.Model):
    """Model representing one funded, period-bounded budget.

    The most recently created budget of a user is the current one; older
    budgets are kept as history and never modified again.

    Attributes:
        user (ForeignKey): The user who owns the budget.
        period (str): The budget period (daily, weekly, ..., custom).
        total_budget (Decimal): The total amount available for the period.
        created_at (DateTime): When the budget was created; the period starts here.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="budgets",
    )
    period = models.CharField(max_length=15, choices=BUDGET_PERIODS)
    total_budget = models.DecimalField(max_digits=15, decimal_places=2)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.get_period_display()} budget of {self.total_budget}"


class BudgetItem(models.Model):
    """Model representing a category of a budget.

    Attributes:
        budget (ForeignKey): The budget the category belongs to.
        name (str): The name of the category.
        amount (Decimal): The amount allocated to the category.
        spent (Decimal): The amount spent, recomputed from the expense rows.
        deadline (DateTime): An optional date by which the money should be spent.
        note (str): An optional free-text note.
        tag (str): An optional tag, one of ITEM_TAGS or a custom string.
        is_impulse (bool): Created from the expense flow instead of planned.
        is_continuous (bool): The remaining balance carries to the next period.
        is_recurring (bool): The full amount resets in the next period.
    """

    budget = models.ForeignKey(Budget, on_delete=models.CASCADE, related_name="items")
    name = models.CharField(max_length=100)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    spent = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    deadline = models.DateTimeField(blank=True, null=True)
    note = models.TextField(blank=True, null=True)
    tag = models.CharField(max_length=MAX_TAG_LENGTH, blank=True, null=True)
    is_impulse = models.BooleanField(default=False)
    is_continuous = models.BooleanField(default=False)
    is_recurring = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]

    def save(self, *args, **kwargs) -> None:
        self.is_continuous, self.is_recurring = resolve_carry_flags(
            self.is_continuous, self.is_recurring
        )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} ({self.spent}/{self.amount})"


class SubBudgetItem(models.Model):
    """Model representing a sub-allocation inside a budget category.

    Attributes:
        budget_item (ForeignKey): The parent category.
        name (str): The name of the sub-item.
        amount (Decimal): The amount allocated to the sub-item.
        note (str): An optional free-text note.
        tag (str): An optional tag.
    """

    budget_item = models.ForeignKey(
        BudgetItem, on_delete=models.CASCADE, related_name="sub_items"
    )
    name = models.CharField(max_length=100)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    note = models.TextField(blank=True, null=True)
    tag = models.CharField(max_length=MAX_TAG_LENGTH, blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.amount})"
