"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from fortuna.domain import Frequency, RecurringTransaction, TransactionType
from fortuna.events import EventPublisher
from fortuna.projections import ProjectionGenerator
from fortuna.stores import (
    InMemoryAccountDirectory,
    InMemoryTemplateStore,
    InMemoryTransactionStore,
    InMemoryWorkspaceDirectory,
)

# Fixed "today" so month windows are deterministic
TODAY = date(2025, 6, 15)

WORKSPACE_ID = 1
ACCOUNT_ID = 10
CATEGORY_ID = 20


@pytest.fixture
def template_store():
    return InMemoryTemplateStore()


@pytest.fixture
def transaction_store():
    return InMemoryTransactionStore()


@pytest.fixture
def workspace_directory():
    return InMemoryWorkspaceDirectory([WORKSPACE_ID])


@pytest.fixture
def account_directory():
    directory = InMemoryAccountDirectory()
    directory.add_account(WORKSPACE_ID, ACCOUNT_ID)
    directory.add_category(WORKSPACE_ID, CATEGORY_ID)
    return directory


@pytest.fixture
def publisher():
    return EventPublisher()


@pytest.fixture
def generator(template_store, transaction_store, publisher):
    return ProjectionGenerator(
        template_store, transaction_store, publisher=publisher, today=lambda: TODAY
    )


@pytest.fixture
def make_template(template_store):
    """Factory that stores a template with sensible defaults."""

    def _make(**overrides) -> RecurringTransaction:
        fields = {
            "workspace_id": WORKSPACE_ID,
            "name": "Rent",
            "amount": Decimal("1200.00"),
            "account_id": ACCOUNT_ID,
            "type": TransactionType.EXPENSE,
            "frequency": Frequency.MONTHLY,
            "due_day": 15,
            "start_date": date(2025, 1, 1),
            "is_active": True,
        }
        fields.update(overrides)
        return template_store.add(RecurringTransaction(**fields))

    return _make
