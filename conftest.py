from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from core.notifications import Notifier


class FakeClock:
    """Monotonic clock the tests move forward by hand."""

    def __init__(self, start: float = 100.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def user(django_user_model):
    return django_user_model.objects.create_user(
        username="alice", password="s3cret-pass", email="alice@example.com"
    )


@pytest.fixture
def other_user(django_user_model):
    return django_user_model.objects.create_user(
        username="bob", password="s3cret-pass", email="bob@example.com"
    )


@pytest.fixture
def auth_client(client, user):
    client.force_login(user)
    return client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def manager(user, notifier, clock):
    from budgets.manager import BudgetManager

    return BudgetManager(user, notify=notifier, clock=clock, debounce_seconds=1.0)


@pytest.fixture
def budget(user):
    from budgets import services

    return services.create_budget(user, "monthly", Decimal("1000"))


@pytest.fixture
def loaded_manager(manager, budget):
    assert manager.load_budget()
    return manager


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 15, 12, 0, tzinfo=dt_timezone.utc)
