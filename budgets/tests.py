import json
from datetime import timedelta
from decimal import Decimal

import pytest
from django.urls import reverse
from django.utils import timezone

from budgets import services
from budgets.alerts import get_budget_alerts
from budgets.calculations import (
    carry_over_amount,
    exceeds_budget,
    is_duplicate_tracking,
    is_over_budget,
    item_remaining,
    remaining_budget,
    resolve_carry_flags,
    spent_percentage,
    split_expense_amount,
    sub_allocation_exceeded,
    total_allocated,
    total_spent,
    unallocated_budget,
)
from budgets.data import BudgetItemData, SubBudgetItemData
from budgets.manager import ACTIVE, EXPIRED, NO_BUDGET, BudgetManager
from budgets.models import Budget, BudgetItem, SubBudgetItem
from core.exceptions import PersistenceError
from income.models import IncomeEntry


def make_item(item_id=1, amount="100", spent="0", name=None, **kwargs) -> BudgetItemData:
    return BudgetItemData(
        id=item_id,
        name=name or f"Item {item_id}",
        amount=Decimal(amount),
        spent=Decimal(spent),
        **kwargs,
    )


def error_titles(notifier) -> list[str]:
    return [entry["title"] for entry in notifier.messages if entry["tags"] == "danger"]


# Create your tests here.
class TestAggregation:
    def test_empty_collection(self):
        assert total_allocated([]) == 0
        assert total_spent([]) == 0
        assert remaining_budget(Decimal("500"), []) == Decimal("500")
        assert unallocated_budget(Decimal("500"), []) == Decimal("500")

    def test_totals(self):
        items = [make_item(1, "100", "40"), make_item(2, "250", "300")]
        assert total_allocated(items) == Decimal("350")
        assert total_spent(items) == Decimal("340")
        assert remaining_budget(Decimal("300"), items) == Decimal("-40")
        assert unallocated_budget(Decimal("300"), items) == Decimal("-50")

    def test_spent_percentage_of_empty_allocation_is_zero(self):
        assert spent_percentage(Decimal(0), Decimal("10")) == 0
        assert spent_percentage(Decimal("200"), Decimal("50")) == Decimal("25")

    def test_item_remaining_and_over_budget(self):
        assert item_remaining(make_item(amount="100", spent="130")) == Decimal("-30")
        assert is_over_budget(make_item(amount="100", spent="100.01"))
        assert not is_over_budget(make_item(amount="100", spent="100"))


class TestGuards:
    def test_exceeds_budget(self):
        assert exceeds_budget(Decimal("100"), Decimal("80"), Decimal("25"))
        assert not exceeds_budget(Decimal("100"), Decimal("80"), Decimal("20"))

    def test_duplicate_tracking_needs_previous_expenses(self):
        assert is_duplicate_tracking(Decimal("100"), Decimal("80"), Decimal("25"))
        assert not is_duplicate_tracking(Decimal("100"), Decimal("0"), Decimal("150"))

    def test_sub_allocation(self):
        assert not sub_allocation_exceeded(Decimal("100"), [Decimal("60")], Decimal("40"))
        assert sub_allocation_exceeded(Decimal("100"), [Decimal("60")], Decimal("40.01"))


class TestCarryOver:
    def test_continuous_keeps_remaining(self):
        assert carry_over_amount(Decimal("100"), Decimal("60"), recurring=False) == Decimal("40")

    def test_continuous_never_negative(self):
        assert carry_over_amount(Decimal("100"), Decimal("160"), recurring=False) == 0

    def test_recurring_resets_to_full_amount(self):
        assert carry_over_amount(Decimal("100"), Decimal("60"), recurring=True) == Decimal("100")

    @pytest.mark.parametrize(
        "flags, expected",
        [
            ((True, True), (True, False)),
            ((True, None), (True, False)),
            ((None, True), (False, True)),
            ((False, None), (False, None)),
            ((False, False), (False, False)),
        ],
    )
    def test_resolve_carry_flags(self, flags, expected):
        assert resolve_carry_flags(*flags) == expected


class TestSplitExpenseAmount:
    def test_proportional_split(self):
        assert split_expense_amount(Decimal("50"), [Decimal("30"), Decimal("70")]) == [
            Decimal("15.00"),
            Decimal("35.00"),
        ]

    def test_remainder_goes_to_last_share(self):
        shares = split_expense_amount(Decimal("10"), [Decimal("1"), Decimal("1"), Decimal("1")])
        assert shares == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]
        assert sum(shares) == Decimal("10")

    def test_equal_split_without_weights(self):
        assert split_expense_amount(Decimal("9"), [Decimal(0), Decimal(0)]) == [
            Decimal("4.50"),
            Decimal("4.50"),
        ]

    def test_no_sub_items(self):
        assert split_expense_amount(Decimal("9"), []) == []


class TestBudgetItemData:
    def test_percentage_used_is_capped(self):
        item = make_item(amount="100", spent="150")
        assert item.percentage_used == 100
        assert item.is_over_budget
        assert item.status_color == "danger"
        assert item.remaining == Decimal("-50")

    @pytest.mark.parametrize(
        "spent, color", [("85", "warning"), ("65", "success"), ("10", "primary")]
    )
    def test_status_color(self, spent, color):
        assert make_item(spent=spent).status_color == color

    def test_get_sub_item(self):
        sub = SubBudgetItemData(id=7, name="Coffee", amount=Decimal("20"))
        item = make_item(sub_items=(sub,))
        assert item.get_sub_item(7) is sub
        assert item.get_sub_item(8) is None


class TestAlerts:
    def test_item_thresholds(self, fixed_now):
        items = [
            make_item(1, "100", "76"),
            make_item(2, "100", "91"),
            make_item(3, "100", "120"),
            make_item(4, "100", "10"),
        ]
        alerts = get_budget_alerts(items, Decimal("10000"), fixed_now)
        assert [alert["id"] for alert in alerts] == ["1-warning", "2-critical", "3-exceeded"]
        assert "20.0%" in alerts[2]["message"]

    def test_deadline_with_low_usage(self, fixed_now):
        items = [
            make_item(1, "100", "10", deadline=fixed_now + timedelta(days=2)),
            make_item(2, "100", "60", deadline=fixed_now + timedelta(days=2)),
            make_item(3, "100", "10", deadline=fixed_now + timedelta(days=10)),
            make_item(4, "100", "10", deadline=fixed_now - timedelta(days=1)),
        ]
        alerts = get_budget_alerts(items, Decimal("10000"), fixed_now)
        assert [alert["id"] for alert in alerts] == ["1-deadline"]
        assert alerts[0]["type"] == "info"

    def test_total_thresholds(self, fixed_now):
        items = [make_item(1, "1000", "50", name="A")]
        assert get_budget_alerts(items, Decimal("60"), fixed_now)[-1]["id"] == "total-warning"
        assert get_budget_alerts(items, Decimal("52"), fixed_now)[-1]["id"] == "total-critical"
        assert get_budget_alerts(items, Decimal("1000"), fixed_now) == []


@pytest.mark.django_db
class TestLoadBudget:
    def test_no_budget(self, manager):
        assert not manager.load_budget()
        assert manager.status == NO_BUDGET
        assert manager.items == ()

    def test_loads_items_and_sub_items(self, manager, budget):
        item = services.create_budget_item(budget.id, "Groceries", Decimal("300"), tag="Groceries")
        services.create_sub_item(item.id, "Market", Decimal("100"))

        assert manager.load_budget()
        assert manager.status == ACTIVE
        assert manager.current_budget_id == budget.id
        assert manager.total_budget == Decimal("1000")
        assert manager.date_range.end_date > manager.date_range.start_date
        loaded = manager.get_item(item.id)
        assert loaded.tag == "Groceries"
        assert [sub.name for sub in loaded.sub_items] == ["Market"]
        assert loaded.sub_items[0].spent == 0
        assert not loaded.sub_items[0].has_expenses

    def test_most_recent_budget_is_current(self, manager, user, budget):
        newer = services.create_budget(user, "weekly", Decimal("70"))
        manager.load_budget()
        assert manager.current_budget_id == newer.id
        assert manager.period == "weekly"

    def test_debounce(self, manager, budget, clock, monkeypatch):
        calls = []
        original = services.get_current_budget

        def counting(user):
            calls.append(user)
            return original(user)

        monkeypatch.setattr(services, "get_current_budget", counting)

        assert manager.load_budget()
        clock.advance(0.5)
        assert not manager.load_budget()
        assert len(calls) == 1

        assert manager.load_budget(force=True)
        assert len(calls) == 2

        clock.advance(1.5)
        assert manager.load_budget()
        assert len(calls) == 3

    def test_skips_while_loading(self, manager, budget):
        manager.is_loading = True
        assert not manager.load_budget(force=True)

    def test_failure_keeps_previous_state(self, loaded_manager, notifier, clock, monkeypatch):
        loaded_manager.add_budget_item("Rent", "500")
        before = loaded_manager.items

        def broken(budget):
            raise PersistenceError("Failed to get budget items: database is locked")

        monkeypatch.setattr(services, "get_budget_items", broken)
        clock.advance(5)

        assert not loaded_manager.load_budget()
        assert loaded_manager.items == before
        assert not loaded_manager.is_loading
        assert "Error loading budget" in error_titles(notifier)

    def test_expired(self, user, budget, notifier):
        manager = BudgetManager(
            user, notify=notifier, now=lambda: timezone.now() + timedelta(days=40)
        )
        assert manager.load_budget()
        assert manager.is_expired
        assert manager.status == EXPIRED


@pytest.mark.django_db
class TestInitializeBudget:
    def test_creates_budget(self, manager, user):
        assert manager.initialize_budget("weekly", "250")
        assert manager.status == ACTIVE
        assert manager.total_budget == Decimal("250")
        assert Budget.objects.filter(user=user).count() == 1

    @pytest.mark.parametrize("period, amount", [("hourly", "100"), ("monthly", "0"), ("monthly", "abc")])
    def test_rejects_invalid_input(self, manager, notifier, user, period, amount):
        assert not manager.initialize_budget(period, amount)
        assert error_titles(notifier) == ["Error creating budget"]
        assert not Budget.objects.filter(user=user).exists()

    def test_reraises_persistence_errors(self, manager, notifier, monkeypatch):
        def broken(user, period, total_budget):
            raise PersistenceError("Could not create the new budget. Please try again.")

        monkeypatch.setattr(services, "create_budget", broken)
        with pytest.raises(PersistenceError):
            manager.initialize_budget("monthly", "100")
        assert error_titles(notifier) == ["Error creating budget"]
        assert not manager.is_loading

    def test_effective_starting_amount(self, manager):
        assert manager.effective_starting_amount("100") == Decimal("100")
        manager.previous_remaining_budget = Decimal("40")
        assert manager.effective_starting_amount("100") == Decimal("140")


@pytest.mark.django_db
class TestNewBudgetPeriod:
    @pytest.fixture
    def staged_manager(self, loaded_manager):
        rent = loaded_manager.add_budget_item("Rent", "100", is_continuous=True, note="Flat", tag="Bills")
        loaded_manager.add_sub_item(rent.id, "Deposit", "30")
        gym = loaded_manager.add_budget_item("Gym", "100", is_recurring=True)
        loaded_manager.add_budget_item("Misc", "100")
        loaded_manager.add_expense(rent.id, "60")
        loaded_manager.add_expense(gym.id, "60")
        return loaded_manager, rent, gym

    def test_requires_a_loaded_budget(self, manager, notifier):
        assert not manager.create_new_budget_period()
        assert error_titles(notifier) == ["Missing budget information"]

    def test_stage_only_flagged_items(self, staged_manager):
        manager, rent, gym = staged_manager
        misc = next(item for item in manager.items if item.name == "Misc")
        staged = manager.stage_carry_over(
            continuous_ids=[rent.id, gym.id, misc.id], recurring_ids=[gym.id], include_remaining=True
        )
        assert [(entry.item.name, entry.kind) for entry in staged] == [
            ("Rent", "continuous"),
            ("Gym", "recurring"),
        ]
        assert manager.previous_remaining_budget == Decimal("880")

    def test_carried_items_are_recreated(self, staged_manager, user):
        manager, rent, gym = staged_manager
        old_budget_id = manager.current_budget_id
        assert manager.create_new_budget_period()
        manager.stage_carry_over([rent.id], [gym.id], include_remaining=True)

        assert manager.initialize_budget("monthly", manager.effective_starting_amount("500"))

        assert manager.current_budget_id != old_budget_id
        assert manager.total_budget == Decimal("1380")
        assert manager.previous_remaining_budget == 0
        assert manager.carry_over_items == ()

        new_rent = next(item for item in manager.items if item.name == "Rent")
        new_gym = next(item for item in manager.items if item.name == "Gym")
        assert new_rent.amount == Decimal("40")
        assert new_rent.spent == 0
        assert new_rent.is_continuous and not new_rent.is_recurring
        assert (new_rent.note, new_rent.tag) == ("Flat", "Bills")
        assert [sub.name for sub in new_rent.sub_items] == ["Deposit"]
        assert new_gym.amount == Decimal("100")
        assert new_gym.is_recurring
        assert len(manager.items) == 2

        # Previous period stays untouched
        assert BudgetItem.objects.filter(budget_id=old_budget_id).count() == 3
        assert BudgetItem.objects.get(budget_id=old_budget_id, name="Rent").spent == Decimal("60")

    def test_one_failed_item_does_not_stop_the_others(self, staged_manager, notifier, monkeypatch):
        manager, rent, gym = staged_manager
        manager.stage_carry_over([rent.id], [gym.id])
        original = services.create_budget_item

        def flaky(budget_id, name, amount, **kwargs):
            if name == "Rent":
                raise PersistenceError("Failed to create budget item: disk full")
            return original(budget_id, name, amount, **kwargs)

        monkeypatch.setattr(services, "create_budget_item", flaky)

        assert manager.initialize_budget("monthly", "500")
        assert [item.name for item in manager.items] == ["Gym"]
        assert "Failed to recreate Rent" in error_titles(notifier)
        assert BudgetItem.objects.filter(budget_id=manager.current_budget_id).count() == 1

    def test_remaining_not_carried_when_not_asked(self, staged_manager):
        manager, rent, gym = staged_manager
        manager.stage_carry_over([rent.id], [gym.id], include_remaining=False)
        assert manager.previous_remaining_budget == 0

    def test_reset_budget(self, staged_manager):
        manager, _, _ = staged_manager
        manager.reset_budget()
        assert manager.status == NO_BUDGET
        assert manager.items == ()
        assert manager.total_budget == 0


@pytest.mark.django_db
class TestBudgetItemMutations:
    def test_add_budget_item(self, loaded_manager):
        item = loaded_manager.add_budget_item("  Rent ", "500", tag="Bills")
        assert item.name == "Rent"
        assert loaded_manager.get_item(item.id) == item
        assert loaded_manager.get_unallocated_budget() == Decimal("500")
        assert BudgetItem.objects.get(id=item.id).spent == 0

    @pytest.mark.parametrize("name, amount", [("", "10"), ("Rent", "-5"), ("Rent", "0")])
    def test_add_budget_item_validation(self, loaded_manager, notifier, name, amount):
        assert loaded_manager.add_budget_item(name, amount) is None
        assert error_titles(notifier) == ["Invalid budget item"]
        assert loaded_manager.items == ()

    def test_add_budget_item_without_budget(self, manager, notifier):
        assert manager.add_budget_item("Rent", "10") is None
        assert error_titles(notifier) == ["Error adding budget item"]

    @pytest.mark.parametrize("amount", ["1e20", "10.005"])
    def test_amount_must_fit_money_column(self, loaded_manager, notifier, amount):
        assert loaded_manager.add_budget_item("Rent", amount) is None
        assert error_titles(notifier) == ["Invalid budget item"]
        assert not BudgetItem.objects.exists()

    def test_lowering_amount_below_sub_items_is_rejected(self, loaded_manager, notifier):
        item = loaded_manager.add_budget_item("Food", "100")
        loaded_manager.add_sub_item(item.id, "Coffee", "30")
        loaded_manager.add_sub_item(item.id, "Lunch", "70")

        assert loaded_manager.update_budget_item(item.id, amount="10") is None
        assert error_titles(notifier) == ["Sub-items exceed budget"]
        assert loaded_manager.get_item(item.id).amount == Decimal("100")
        assert BudgetItem.objects.get(id=item.id).amount == Decimal("100")

        assert loaded_manager.update_budget_item(item.id, amount="100").amount == Decimal("100")

    def test_tag_length(self, loaded_manager, notifier):
        assert loaded_manager.add_budget_item("Rent", "10", tag="x" * 51) is None
        assert error_titles(notifier) == ["Invalid budget item"]

    def test_flags_are_exclusive_on_create(self, loaded_manager):
        item = loaded_manager.add_budget_item("Rent", "10", is_continuous=True, is_recurring=True)
        assert item.is_continuous and not item.is_recurring

    def test_mark_item_as_continuous_clears_recurring(self, loaded_manager, notifier):
        item = loaded_manager.add_budget_item("Gym", "50", is_recurring=True)

        updated = loaded_manager.mark_item_as_continuous(item.id, True)

        assert updated.is_continuous and not updated.is_recurring
        stored = BudgetItem.objects.get(id=item.id)
        assert stored.is_continuous and not stored.is_recurring
        assert notifier.messages[-1]["title"] == "Item will continue to next period"

    def test_mark_item_as_recurring_clears_continuous(self, loaded_manager):
        item = loaded_manager.add_budget_item("Rent", "50", is_continuous=True)
        updated = loaded_manager.mark_item_as_recurring(item.id, True)
        assert updated.is_recurring and not updated.is_continuous

    def test_unmark_keeps_other_flag(self, loaded_manager):
        item = loaded_manager.add_budget_item("Gym", "50", is_recurring=True)
        updated = loaded_manager.mark_item_as_continuous(item.id, False)
        assert not updated.is_continuous and updated.is_recurring

    def test_update_deadline_note_and_tag(self, loaded_manager):
        item = loaded_manager.add_budget_item("Trip", "200")
        deadline = timezone.now() + timedelta(days=5)

        loaded_manager.update_item_deadline(item.id, deadline)
        updated = loaded_manager.update_item_note_tag(item.id, " Book early ", "")

        assert updated.deadline == deadline
        assert updated.note == "Book early"
        assert updated.tag is None
        stored = BudgetItem.objects.get(id=item.id)
        assert stored.deadline == deadline
        assert stored.note == "Book early"

    def test_update_rejects_unknown_fields(self, loaded_manager, notifier):
        item = loaded_manager.add_budget_item("Trip", "200")
        assert loaded_manager.update_budget_item(item.id, spent="10") is None
        assert error_titles(notifier) == ["Error updating budget item"]

    def test_update_unknown_item(self, loaded_manager, notifier):
        assert loaded_manager.update_budget_item(999, name="Other") is None
        assert error_titles(notifier) == ["Error updating budget item"]

    def test_delete_budget_item(self, loaded_manager):
        item = loaded_manager.add_budget_item("Trip", "200")
        assert loaded_manager.delete_budget_item(item.id)
        assert loaded_manager.items == ()
        assert not BudgetItem.objects.filter(id=item.id).exists()

    def test_cannot_touch_other_users_items(self, loaded_manager, other_user, notifier):
        foreign_budget = services.create_budget(other_user, "monthly", Decimal("100"))
        foreign = services.create_budget_item(foreign_budget.id, "Theirs", Decimal("10"))
        assert not loaded_manager.delete_budget_item(foreign.id)
        assert BudgetItem.objects.filter(id=foreign.id).exists()
        assert error_titles(notifier) == ["Error deleting budget item"]


@pytest.mark.django_db
class TestSubItemMutations:
    def test_add_sub_item(self, loaded_manager):
        item = loaded_manager.add_budget_item("Food", "100")
        sub_item = loaded_manager.add_sub_item(item.id, "Coffee", "30", tag="Dining")
        assert loaded_manager.get_item(item.id).sub_items == (sub_item,)
        assert SubBudgetItem.objects.get(id=sub_item.id).budget_item_id == item.id

    def test_sub_items_cannot_exceed_parent(self, loaded_manager, notifier):
        item = loaded_manager.add_budget_item("Food", "100")
        loaded_manager.add_sub_item(item.id, "Coffee", "60")
        assert loaded_manager.add_sub_item(item.id, "Lunch", "50") is None
        assert error_titles(notifier) == ["Sub-items exceed budget"]
        assert SubBudgetItem.objects.filter(budget_item_id=item.id).count() == 1

    def test_update_sub_item(self, loaded_manager, notifier):
        item = loaded_manager.add_budget_item("Food", "100")
        coffee = loaded_manager.add_sub_item(item.id, "Coffee", "60")
        loaded_manager.add_sub_item(item.id, "Lunch", "40")

        assert loaded_manager.update_sub_item(item.id, coffee.id, amount="70") is None
        updated = loaded_manager.update_sub_item(item.id, coffee.id, name="Espresso", amount="55")

        assert updated.name == "Espresso"
        assert loaded_manager.get_item(item.id).get_sub_item(coffee.id).amount == Decimal("55")
        assert SubBudgetItem.objects.get(id=coffee.id).name == "Espresso"

    def test_delete_sub_item(self, loaded_manager):
        item = loaded_manager.add_budget_item("Food", "100")
        coffee = loaded_manager.add_sub_item(item.id, "Coffee", "60")
        assert loaded_manager.delete_sub_item(item.id, coffee.id)
        assert loaded_manager.get_item(item.id).sub_items == ()


@pytest.mark.django_db
class TestGuardsOnManager:
    def test_item_and_sub_item_targets(self, loaded_manager):
        item = loaded_manager.add_budget_item("Food", "100")
        coffee = loaded_manager.add_sub_item(item.id, "Coffee", "20")
        loaded_manager.add_expense(item.id, "80")

        assert loaded_manager.would_exceed_budget(item.id, "25")
        assert not loaded_manager.would_exceed_budget(item.id, "20")
        assert loaded_manager.would_duplicate_tracking(item.id, "25")
        assert loaded_manager.would_exceed_budget(item.id, "25", coffee.id)
        assert not loaded_manager.would_duplicate_tracking(item.id, "25", coffee.id)
        assert not loaded_manager.would_exceed_budget(999, "25")


@pytest.mark.django_db
class TestBudgetViews:
    def test_login_required(self, client):
        response = client.get(reverse("budget"))
        assert response.status_code == 302

    def test_get_without_budget(self, auth_client):
        response = auth_client.get(reverse("budget"))
        data = response.json()
        assert response.status_code == 200
        assert data["budget"]["status"] == NO_BUDGET
        assert ["monthly", "Monthly"] in data["periods"]

    def test_create_budget(self, auth_client, user):
        response = auth_client.post(reverse("budget"), {"period": "monthly", "amount": "1000"})
        data = response.json()
        assert response.status_code == 201
        assert data["success"]
        assert Decimal(data["budget"]["total_budget"]) == Decimal("1000")
        assert Budget.objects.filter(user=user).count() == 1

    def test_create_budget_missing_fields(self, auth_client):
        response = auth_client.post(reverse("budget"), {"period": "monthly"})
        assert response.status_code == 400
        assert not response.json()["success"]

    def test_item_actions(self, auth_client, budget):
        url = reverse("budget_items")
        response = auth_client.post(url, {"name": "Rent", "amount": "400", "is_recurring": "on"})
        assert response.status_code == 201
        item_id = response.json()["item"]["id"]

        response = auth_client.post(url, {"action": "continuous", "item_id": item_id, "value": "1"})
        item = response.json()["item"]
        assert item["is_continuous"] and not item["is_recurring"]

        response = auth_client.post(url, {"action": "deadline", "item_id": item_id, "deadline": "2030-01-31"})
        assert response.status_code == 200
        assert response.json()["item"]["deadline"].startswith("2030-01-31")

        response = auth_client.post(url, {"action": "edit", "item_id": item_id, "amount": "450"})
        assert Decimal(response.json()["item"]["amount"]) == Decimal("450")

        response = auth_client.post(url, {"action": "delete", "item_id": item_id})
        assert response.status_code == 200
        assert response.json()["budget"]["items"] == []

    def test_unknown_action(self, auth_client, budget):
        response = auth_client.post(reverse("budget_items"), {"action": "explode", "item_id": "1"})
        assert response.status_code == 400

    def test_sub_items(self, auth_client, budget):
        item = services.create_budget_item(budget.id, "Food", Decimal("100"))
        url = reverse("budget_sub_items", args=[item.id])

        response = auth_client.post(url, {"name": "Coffee", "amount": "40"})
        assert response.status_code == 201
        sub_item_id = response.json()["sub_item"]["id"]

        response = auth_client.post(url, {"name": "Lunch", "amount": "70"})
        assert response.status_code == 400

        response = auth_client.post(url, {"action": "delete", "sub_item_id": sub_item_id})
        assert response.status_code == 200
        assert not SubBudgetItem.objects.filter(id=sub_item_id).exists()

    def test_new_period(self, auth_client, user, budget):
        rent = services.create_budget_item(budget.id, "Rent", Decimal("100"), is_continuous=True)
        BudgetItem.objects.filter(id=rent.id).update(spent=Decimal("60"))

        response = auth_client.post(
            reverse("new_budget_period"),
            {
                "amount": "500",
                "continuous_ids": [str(rent.id)],
                "include_remaining": "1",
            },
        )

        data = response.json()
        assert response.status_code == 201, data
        assert data["budget"]["period"] == "monthly"
        assert Decimal(data["budget"]["total_budget"]) == Decimal("1440")
        assert [Decimal(item["amount"]) for item in data["budget"]["items"]] == [Decimal("40")]
        assert data["carried"] == [{"id": rent.id, "name": "Rent", "kind": "continuous"}]
        assert Budget.objects.filter(user=user).count() == 2

    def test_new_period_without_budget(self, auth_client):
        response = auth_client.post(reverse("new_budget_period"), {"period": "monthly", "amount": "500"})
        assert response.status_code == 400
        assert json.loads(response.content)["messages"][0]["title"] == "Missing budget information"

    def test_each_request_loads_current_state(self, auth_client, budget):
        services.create_budget_item(budget.id, "Rent", Decimal("400"))
        first = auth_client.get(reverse("budget")).json()

        services.create_budget_item(budget.id, "Food", Decimal("100"))
        second = auth_client.get(reverse("budget")).json()

        assert [item["name"] for item in first["budget"]["items"]] == ["Rent"]
        assert [item["name"] for item in second["budget"]["items"]] == ["Rent", "Food"]

    def test_budget_history(self, auth_client, user, budget):
        old_item = services.create_budget_item(budget.id, "Rent", Decimal("400"))
        BudgetItem.objects.filter(id=old_item.id).update(spent=Decimal("350"))
        Budget.objects.filter(id=budget.id).update(created_at=timezone.now() - timedelta(days=60))
        current = services.create_budget(user, "weekly", Decimal("200"))

        response = auth_client.get(reverse("budget_history"))
        history = response.json()["budgets"]

        assert response.status_code == 200
        assert [entry["id"] for entry in history] == [current.id, budget.id]
        assert [entry["status"] for entry in history] == [ACTIVE, "archived"]
        assert Decimal(history[1]["total_spent"]) == Decimal("350")
        assert Decimal(history[1]["remaining_budget"]) == Decimal("650")
        assert history[1]["item_count"] == 1
        assert Decimal(history[0]["total_spent"]) == 0

    def test_add_income_view(self, auth_client, budget):
        response = auth_client.post(reverse("add_income_to_budget"), {"name": "Bonus", "amount": "100"})
        data = response.json()
        assert response.status_code == 201
        assert Decimal(data["budget"]["total_budget"]) == Decimal("1100")
        assert IncomeEntry.objects.get(id=data["income_entry_id"]).name == "Bonus"

    def test_add_income_view_missing_fields(self, auth_client, budget):
        response = auth_client.post(reverse("add_income_to_budget"), {"name": "Bonus"})
        assert response.status_code == 400
        assert not IncomeEntry.objects.exists()


@pytest.mark.django_db
class TestArchivedBudgets:
    @pytest.fixture
    def archived(self, user, budget):
        old_item = services.create_budget_item(budget.id, "Rent", Decimal("400"))
        old_sub = services.create_sub_item(old_item.id, "Deposit", Decimal("100"))
        services.create_budget(user, "monthly", Decimal("800"))
        return old_item, old_sub

    def test_items_of_older_budgets_cannot_be_deleted(self, manager, notifier, archived):
        old_item, old_sub = archived
        assert manager.load_budget()

        assert not manager.delete_sub_item(old_item.id, old_sub.id)
        assert not manager.delete_budget_item(old_item.id)

        assert SubBudgetItem.objects.filter(id=old_sub.id).exists()
        assert BudgetItem.objects.filter(id=old_item.id).exists()
        assert error_titles(notifier) == ["Error deleting sub-item", "Error deleting budget item"]

    def test_items_of_older_budgets_cannot_be_changed(self, manager, notifier, archived):
        old_item, old_sub = archived
        assert manager.load_budget()

        assert manager.update_budget_item(old_item.id, name="Other") is None
        assert manager.update_sub_item(old_item.id, old_sub.id, name="Other") is None
        assert BudgetItem.objects.get(id=old_item.id).name == "Rent"


@pytest.mark.django_db
class TestAddIncomeToBudget:
    def test_raises_total_and_records_entry(self, loaded_manager, user):
        entry = loaded_manager.add_income_to_budget(" Bonus ", "250")

        assert entry.name == "Bonus"
        assert entry.budget_period_start == loaded_manager.date_range.start_date
        assert loaded_manager.total_budget == Decimal("1250")
        assert Budget.objects.get(id=loaded_manager.current_budget_id).total_budget == Decimal("1250")
        assert IncomeEntry.objects.filter(user=user).count() == 1

    def test_requires_a_budget(self, manager, notifier):
        assert manager.add_income_to_budget("Bonus", "250") is None
        assert error_titles(notifier) == ["Error adding income"]
        assert not IncomeEntry.objects.exists()

    @pytest.mark.parametrize("name, amount", [("", "250"), ("Bonus", "0"), ("Bonus", "1e20")])
    def test_validation(self, loaded_manager, notifier, name, amount):
        assert loaded_manager.add_income_to_budget(name, amount) is None
        assert error_titles(notifier) == ["Invalid income entry"]
        assert loaded_manager.total_budget == Decimal("1000")
        assert not IncomeEntry.objects.exists()

    def test_entry_rolled_back_when_total_update_fails(self, loaded_manager, notifier, monkeypatch):
        def broken(user, budget_id, amount):
            raise PersistenceError("Could not update the budget total.")

        monkeypatch.setattr(services, "increase_budget_total", broken)

        assert loaded_manager.add_income_to_budget("Bonus", "250") is None
        assert error_titles(notifier) == ["Error adding income"]
        assert loaded_manager.total_budget == Decimal("1000")
        assert not IncomeEntry.objects.exists()
