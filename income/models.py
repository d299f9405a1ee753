from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone


# Create your models here.
class IncomeEntry(models.Model):
    """Model representing a named source of income.

    Income is independent of budgets: the total is only offered as the
    suggested amount of the next budget.

    Attributes:
        user (ForeignKey): The user who owns the entry.
        name (str): The name of the income source.
        amount (Decimal): The amount received.
        budget_period_start (DateTime): The start of the budget period it was recorded for.
        created_at (DateTime): When the entry was created.
    """

    user = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="income_entries"
    )
    name = models.CharField(max_length=100)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    budget_period_start = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name_plural = "income entries"

    def __str__(self) -> str:
        return f"{self.name} ({self.amount})"
