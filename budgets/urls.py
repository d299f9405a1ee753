from django.urls import path

from . import views

urlpatterns = [
    path("", views.budget_view, name="budget"),
    path("new-period/", views.new_period_view, name="new_budget_period"),
    path("history/", views.budget_history_view, name="budget_history"),
    path("add-income/", views.add_income_view, name="add_income_to_budget"),
    path("items/", views.budget_items_view, name="budget_items"),
    path(
        "items/<int:item_id>/sub-items/",
        views.sub_items_view,
        name="budget_sub_items",
    ),
]
