from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone

from budgets.models import BudgetItem, SubBudgetItem

# Create your models here.


class Expense(models.Model):
    """Model representing money spent against a budget category.

    Expenses are append-only: nothing in the application updates or deletes
    them, and a category's spent amount is always recomputed from its rows.

    Attributes:
        user (ForeignKey): The user who recorded the expense.
        budget_item (ForeignKey): The category the money was spent on.
        sub_item (ForeignKey): The optional sub-item the money was spent on.
        amount (DecimalField): The amount spent.
        created_at (DateTimeField): When the expense was recorded.
    """

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="expenses")
    budget_item = models.ForeignKey(
        BudgetItem, on_delete=models.CASCADE, related_name="expenses"
    )
    sub_item = models.ForeignKey(
        SubBudgetItem,
        on_delete=models.SET_NULL,
        related_name="expenses",
        blank=True,
        null=True,
    )
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"Expense of {self.amount} on {self.budget_item_id}"
