from django.urls import path

from . import views

urlpatterns = [
    path("", views.dashboard_view, name="dashboard"),
    path(
        "spending-by-category/",
        views.spending_by_category_chart_data,
        name="spending_by_category_chart_data",
    ),
]
