from datetime import date
from decimal import Decimal

import pytest

from budgetsync.categories import default_structure
from budgetsync.models import Transaction
from budgetsync.rules import default_rules
from budgetsync.store import InMemorySheetStore


def make_txn(amount, reference="", description="", booking_date=date(2025, 1, 15), row_number=1):
    """Build a transaction with only the fields the mapping cares about."""
    return Transaction(
        row_number=row_number,
        clearing_number="8327-9",
        account_number="123456789",
        product="Privatkonto",
        currency="SEK",
        booking_date=booking_date,
        transaction_date=booking_date,
        currency_date=booking_date,
        reference=reference,
        description=description,
        amount=Decimal(amount),
    )


@pytest.fixture
def structure():
    return default_structure()


@pytest.fixture
def rules():
    return default_rules()


@pytest.fixture
def store(structure):
    return InMemorySheetStore(structure)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Point settings at a temp config dir."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr("budgetsync.settings.CONFIG_DIR", config_dir)
    monkeypatch.setattr("budgetsync.settings.SETTINGS_PATH", config_dir / "settings.json")
    return config_dir
