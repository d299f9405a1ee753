from decimal import Decimal

import pytest
from django.urls import reverse

from budgets import services as budget_services
from expenses import services as expense_services
from income import services as income_services


@pytest.fixture
def spending(user, budget):
    food = budget_services.create_budget_item(budget.id, "Food", Decimal("100"), tag="Groceries")
    rent = budget_services.create_budget_item(budget.id, "Rent", Decimal("500"), tag="Bills")
    budget_services.create_budget_item(budget.id, "Fun", Decimal("50"))
    for item, amount in [(food, Decimal("120")), (rent, Decimal("250"))]:
        expense_services.add_expense(user, item.id, amount)
        expense_services.update_budget_item_spent(item.id)
    return food, rent


# Create your tests here.
@pytest.mark.django_db
class TestDashboard:
    def test_overview(self, auth_client, user, spending):
        income_services.create_income_entry(user, "Salary", "1500")

        response = auth_client.get(reverse("dashboard"))
        data = response.json()

        assert response.status_code == 200
        overview = data["overview"]
        assert overview["status"] == "active"
        assert Decimal(overview["total_spent"]) == Decimal("370")
        assert Decimal(overview["remaining_budget"]) == Decimal("630")
        assert Decimal(overview["unallocated_budget"]) == Decimal("350")
        assert overview["total_items"] == 3
        assert Decimal(data["total_income"]) == Decimal("1500")
        assert [category["name"] for category in data["top_categories"]] == ["Food", "Rent", "Fun"]
        assert data["alerts"][0]["id"].endswith("-exceeded")

    def test_without_budget(self, auth_client):
        response = auth_client.get(reverse("dashboard"))
        data = response.json()
        assert data["overview"]["status"] == "no_budget"
        assert data["categories"] == []

    def test_spending_chart_data(self, auth_client, spending):
        response = auth_client.get(reverse("spending_by_category_chart_data"))
        data = response.json()
        assert data["labels"] == ["Rent", "Food"]
        assert data["datasets"][0]["data"] == [250.0, 120.0]
        assert len(data["datasets"][0]["backgroundColor"]) == 2
