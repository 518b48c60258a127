"""
Shared fixtures for Rizq tests.
"""

from datetime import datetime, timezone

import pytest

from rizq.config import reset_runtime_state
from rizq.controls import Customer
from rizq.tie_breaking import InternalBankDataStore, set_internal_data_store


@pytest.fixture(autouse=True)
def fresh_runtime_state():
    """Rebuild settings, random source and internal bank data for every test."""
    reset_runtime_state()
    set_internal_data_store(InternalBankDataStore())
    yield
    reset_runtime_state()
    set_internal_data_store(InternalBankDataStore())


@pytest.fixture
def make_customer():
    """Factory for customers with a strong default profile."""

    def _make(**overrides):
        data = {
            "id": "cust_001",
            "name": "Ahmed Al-Rashid",
            "age": 32,
            "income": 15000,
            "credit_score": 720,
            "debt_burden_ratio": 0.25,
            "location": "Riyadh",
            "nationality": "Saudi Arabian",
            "applied_card": "Visa Signature",
        }
        data.update(overrides)
        return Customer(**data)

    return _make


@pytest.fixture
def noon():
    return datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
