"""
URL configuration for budgetplanner project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path

from authentication.views import login_view, logout_view, register_view

urlpatterns = [
    path("admin/", admin.site.urls),
    path("auth/register/", register_view, name="register"),
    path("auth/login/", login_view, name="login"),
    path("auth/logout/", logout_view, name="logout"),
    path("budgets/", include("budgets.urls")),
    path("expenses/", include("expenses.urls")),
    path("income/", include("income.urls")),
    path("dashboard/", include("dashboard.urls")),
]
