from django.contrib import admin

from budgets.models import Budget, BudgetItem, SubBudgetItem


class BudgetItemInline(admin.TabularInline):
    model = BudgetItem
    extra = 0


class SubBudgetItemInline(admin.TabularInline):
    model = SubBudgetItem
    extra = 0


@admin.register(Budget)
class BudgetAdmin(admin.ModelAdmin):
    list_display = ("user", "period", "total_budget", "created_at")
    list_filter = ("period",)
    inlines = [BudgetItemInline]


@admin.register(BudgetItem)
class BudgetItemAdmin(admin.ModelAdmin):
    list_display = ("name", "budget", "amount", "spent", "tag", "is_continuous", "is_recurring")
    list_filter = ("is_impulse", "is_continuous", "is_recurring")
    inlines = [SubBudgetItemInline]
