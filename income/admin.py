from django.contrib import admin

from income.models import IncomeEntry


@admin.register(IncomeEntry)
class IncomeEntryAdmin(admin.ModelAdmin):
    list_display = ("user", "name", "amount", "budget_period_start")
