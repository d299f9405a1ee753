from decimal import Decimal

import pytest
from django.urls import reverse

from budgets import services as budget_services
from budgets.models import BudgetItem
from core.exceptions import PersistenceError
from expenses import services
from expenses.models import Expense
from expenses.views import get_expenses_data


@pytest.fixture
def food(budget):
    return budget_services.create_budget_item(budget.id, "Food", Decimal("100"))


# Create your tests here.
@pytest.mark.django_db
class TestExpenseServices:
    def test_spent_is_recomputed_from_rows(self, user, food):
        BudgetItem.objects.filter(id=food.id).update(spent=Decimal("999"))
        services.add_expense(user, food.id, Decimal("12.50"))
        services.add_expense(user, food.id, Decimal("7.50"))

        assert services.update_budget_item_spent(food.id) == Decimal("20")
        assert services.get_budget_item_spent(food.id) == Decimal("20")

    def test_spent_of_item_without_expenses(self, food):
        assert services.update_budget_item_spent(food.id) == 0

    def test_sub_item_totals(self, user, food):
        coffee = budget_services.create_sub_item(food.id, "Coffee", Decimal("30"))
        lunch = budget_services.create_sub_item(food.id, "Lunch", Decimal("70"))
        services.add_expenses(user, food.id, [(coffee.id, Decimal("5")), (coffee.id, Decimal("2"))])

        assert services.get_sub_item_totals(food.id) == {
            coffee.id: (Decimal("7"), 2),
            lunch.id: (Decimal("0"), 0),
        }

    def test_spent_of_missing_item(self):
        with pytest.raises(PersistenceError):
            services.get_budget_item_spent(123456)


@pytest.mark.django_db
class TestManagerAddExpense:
    def test_updates_spent(self, manager, food):
        manager.load_budget()
        updated = manager.add_expense(food.id, "30")
        assert updated.spent == Decimal("30")
        assert manager.get_item(food.id).spent == Decimal("30")
        assert manager.get_total_spent() == Decimal("30")
        assert Expense.objects.get(budget_item=food).sub_item is None

    def test_splits_across_sub_items(self, manager, user, food):
        coffee = budget_services.create_sub_item(food.id, "Coffee", Decimal("30"))
        lunch = budget_services.create_sub_item(food.id, "Lunch", Decimal("70"))
        manager.load_budget()

        updated = manager.add_expense(food.id, "50", [coffee.id, lunch.id])

        rows = dict(Expense.objects.filter(budget_item=food).values_list("sub_item_id", "amount"))
        assert rows == {coffee.id: Decimal("15"), lunch.id: Decimal("35")}
        assert updated.spent == Decimal("50")
        assert updated.get_sub_item(coffee.id).spent == Decimal("15")
        assert updated.get_sub_item(lunch.id).has_expenses

    def test_single_sub_item(self, manager, food):
        coffee = budget_services.create_sub_item(food.id, "Coffee", Decimal("30"))
        manager.load_budget()

        updated = manager.add_expense(food.id, "10", [coffee.id])

        assert Expense.objects.get(budget_item=food).sub_item_id == coffee.id
        assert updated.get_sub_item(coffee.id).spent == Decimal("10")

    @pytest.mark.parametrize("amount", ["0", "-3", "abc"])
    def test_rejects_invalid_amount(self, manager, notifier, food, amount):
        manager.load_budget()
        assert manager.add_expense(food.id, amount) is None
        assert notifier.messages[-1]["title"] == "Invalid Amount"
        assert not Expense.objects.exists()

    def test_rejects_unknown_targets(self, manager, notifier, food):
        manager.load_budget()
        assert manager.add_expense(999, "10") is None
        assert manager.add_expense(food.id, "10", [999]) is None
        assert [entry["title"] for entry in notifier.messages] == [
            "Error adding expense",
            "Error adding expense",
        ]

    def test_reraises_persistence_errors(self, manager, notifier, food, monkeypatch):
        manager.load_budget()

        def broken(budget_item_id):
            raise PersistenceError("Could not update spent amount.")

        monkeypatch.setattr(services, "update_budget_item_spent", broken)
        with pytest.raises(PersistenceError):
            manager.add_expense(food.id, "10")
        assert notifier.messages[-1]["title"] == "Error adding expense"
        assert manager.get_item(food.id).spent == 0


@pytest.mark.django_db
class TestExpenseHistory:
    def test_filters_and_totals(self, user, other_user, budget, food):
        rent = budget_services.create_budget_item(budget.id, "Rent", Decimal("500"))
        services.add_expense(user, food.id, Decimal("10"))
        services.add_expense(user, rent.id, Decimal("400"))
        services.add_expense(other_user, food.id, Decimal("99"))

        expenses, page_obj, total = get_expenses_data(user)
        assert total == Decimal("410")
        assert [expense.amount for expense in expenses] == [Decimal("400"), Decimal("10")]
        assert page_obj.paginator.count == 2

        expenses, _, total = get_expenses_data(user, budget_item_id=food.id)
        assert [expense.budget_item_name for expense in expenses] == ["Food"]
        assert total == Decimal("10")

    def test_out_of_range_page_returns_last_page(self, user, food):
        for _ in range(3):
            services.add_expense(user, food.id, Decimal("1"))
        _, page_obj, _ = get_expenses_data(user, page_number=9, page_size=2)
        assert page_obj.number == 2

    def test_history_view(self, auth_client, user, food):
        services.add_expense(user, food.id, Decimal("10"))
        response = auth_client.get(reverse("expenses"), {"budget_item": food.id})
        data = response.json()
        assert response.status_code == 200
        assert Decimal(data["total_amount"]) == Decimal("10")
        assert data["expenses"][0]["budget_item_name"] == "Food"
        assert data["num_pages"] == 1


@pytest.mark.django_db
class TestAddExpenseView:
    def test_adds_expense(self, auth_client, food):
        response = auth_client.post(reverse("expenses"), {"item_id": food.id, "amount": "25"})
        data = response.json()
        assert response.status_code == 201
        assert Decimal(data["item"]["spent"]) == Decimal("25")
        assert BudgetItem.objects.get(id=food.id).spent == Decimal("25")

    def test_exceeding_needs_confirmation(self, auth_client, food):
        url = reverse("expenses")

        response = auth_client.post(url, {"item_id": food.id, "amount": "150"})
        assert response.status_code == 409
        assert response.json()["confirm"] == "budget_exceeded"
        assert not Expense.objects.exists()

        response = auth_client.post(url, {"item_id": food.id, "amount": "150", "confirm": "1"})
        assert response.status_code == 201
        assert BudgetItem.objects.get(id=food.id).spent == Decimal("150")

    def test_repeated_overage_is_reported_as_duplicate(self, auth_client, user, food):
        services.add_expense(user, food.id, Decimal("80"))
        services.update_budget_item_spent(food.id)

        response = auth_client.post(reverse("expenses"), {"item_id": food.id, "amount": "25"})

        assert response.status_code == 409
        assert response.json()["confirm"] == "duplicate_tracking"
        assert "Food" in response.json()["message"]

    def test_sub_item_guard(self, auth_client, food):
        coffee = budget_services.create_sub_item(food.id, "Coffee", Decimal("20"))
        response = auth_client.post(
            reverse("expenses"), {"item_id": food.id, "amount": "25", "sub_item_ids": coffee.id}
        )
        assert response.status_code == 409
        assert "Coffee" in response.json()["message"]

    def test_creates_impulse_item(self, auth_client, budget):
        response = auth_client.post(reverse("expenses"), {"new_item_name": "Concert", "amount": "60"})
        assert response.status_code == 201
        item = BudgetItem.objects.get(budget=budget, name="Concert")
        assert item.is_impulse
        assert item.amount == Decimal("60")
        assert item.spent == Decimal("60")

    def test_missing_item(self, auth_client, budget):
        response = auth_client.post(reverse("expenses"), {"amount": "10"})
        assert response.status_code == 400
        assert not response.json()["success"]

    def test_invalid_amount(self, auth_client, food):
        response = auth_client.post(reverse("expenses"), {"item_id": food.id, "amount": "-5"})
        assert response.status_code == 400
        assert response.json()["messages"][0]["title"] == "Invalid Amount"
