"""Pytest fixtures for testing"""

import pytest
from typing import Any, Dict, List
from fastapi.testclient import TestClient
from bdn_checkout.api.main import create_app
from bdn_checkout.api.dependencies import get_catalog
from bdn_checkout.domain.eligibility import ingest_instrument
from bdn_checkout.domain.models import PaymentInstrument
from bdn_checkout.infrastructure.repositories import InMemoryCatalog, SimulatedLedger


def make_instrument(**overrides: Any) -> PaymentInstrument:
    """Build an instrument through the same ingestion path as catalog data"""
    record: Dict[str, Any] = {
        "id": "w1",
        "type": "primary",
        "name": "Primary Wallet",
        "currency": "USD",
        "balance": "100",
        "isActive": True,
    }
    record.update(overrides)
    return ingest_instrument(record)


@pytest.fixture
def wallet_records() -> List[Dict[str, Any]]:
    """Wallets of a typical user: cash, rewards, bank account and card"""
    return [
        {"id": "1", "type": "primary", "name": "Primary Wallet", "currency": "USD", "balance": "1250.75", "isActive": True, "isDefault": True},
        {"id": "2", "type": "myimpact", "name": "MyImpact Rewards", "currency": "BLKD", "balance": "40", "isActive": True},
        {"id": "4", "type": "bankaccount", "name": "Chase Checking", "currency": "USD", "balance": "5432.18", "availableBalance": "5000", "isActive": True},
        {"id": "6", "type": "primary", "name": "Euro Wallet", "currency": "EUR", "balance": "800", "isActive": True},
    ]


@pytest.fixture
def catalog(wallet_records) -> InMemoryCatalog:
    return InMemoryCatalog(wallets={"user-1": wallet_records})


@pytest.fixture
def ledger() -> SimulatedLedger:
    """Simulated ledger without the UI delay"""
    return SimulatedLedger(delay_seconds=0)


@pytest.fixture
def client(catalog: InMemoryCatalog) -> TestClient:
    """Create FastAPI test client backed by the in-memory catalog"""
    app = create_app()
    app.dependency_overrides[get_catalog] = lambda: catalog
    return TestClient(app)


@pytest.fixture
def instrument_factory():
    return make_instrument


@pytest.fixture
def usd_5000() -> PaymentInstrument:
    return make_instrument(id="bank", type="bankaccount", balance="5000", availableBalance="5000")
