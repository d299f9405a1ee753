from django.contrib import admin

from expenses.models import Expense


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ("user", "budget_item", "sub_item", "amount", "created_at")
    date_hierarchy = "created_at"
