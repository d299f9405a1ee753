from django.urls import path

from . import views

urlpatterns = [
    path("", views.income_view, name="income"),
    path("<int:entry_id>/delete/", views.delete_income_view, name="delete_income"),
]
