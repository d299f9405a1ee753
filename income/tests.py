from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse

from core.exceptions import PersistenceError
from income import services
from income.models import IncomeEntry

PERIOD_START = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)


# Create your tests here.
@pytest.mark.django_db
class TestIncomeServices:
    def test_total_income(self, user, other_user):
        services.create_income_entry(user, "Salary", "2500")
        services.create_income_entry(user, "Freelance", "300.50", budget_period_start=PERIOD_START)
        services.create_income_entry(other_user, "Salary", "9999")

        assert services.get_total_income(user) == Decimal("2800.50")
        assert services.get_total_income(user, PERIOD_START) == Decimal("300.50")

    def test_total_without_entries(self, user):
        assert services.get_total_income(user) == 0

    @pytest.mark.parametrize("name, amount", [("", "100"), ("Salary", "0"), ("Salary", "x")])
    def test_validation(self, user, name, amount):
        with pytest.raises(ValidationError):
            services.create_income_entry(user, name, amount)

    def test_delete_only_own_entries(self, user, other_user):
        entry = services.create_income_entry(other_user, "Salary", "100")
        with pytest.raises(PersistenceError):
            services.delete_income_entry(user, entry.id)
        assert IncomeEntry.objects.filter(id=entry.id).exists()

        services.delete_income_entry(other_user, entry.id)
        assert not IncomeEntry.objects.filter(id=entry.id).exists()


@pytest.mark.django_db
class TestIncomeViews:
    def test_add_and_list(self, auth_client):
        response = auth_client.post(reverse("income"), {"name": "Salary", "amount": "2000"})
        data = response.json()
        assert response.status_code == 201
        assert Decimal(data["total_income"]) == Decimal("2000")
        assert Decimal(data["suggested_budget"]) == Decimal("2000")
        assert [entry["name"] for entry in data["entries"]] == ["Salary"]

    def test_invalid_entry(self, auth_client):
        response = auth_client.post(reverse("income"), {"name": "Salary", "amount": "-1"})
        assert response.status_code == 400
        assert response.json()["messages"][0]["title"] == "Invalid income entry"

    def test_delete(self, auth_client, user):
        entry = services.create_income_entry(user, "Salary", "100")
        response = auth_client.post(reverse("delete_income", args=[entry.id]))
        assert response.status_code == 200
        assert response.json()["entries"] == []

    def test_delete_missing(self, auth_client):
        response = auth_client.post(reverse("delete_income", args=[42]))
        assert response.status_code == 404
