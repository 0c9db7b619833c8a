from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import structlog

from ordering.checkout.orchestrator import FulfillmentOrchestrator
from shared.config import FulfillmentSettings
from shared.scheduler.virtual import VirtualScheduler
from shared.store.memory import InMemoryStore

DELIVERY_DELAY = 180.0
APPROVAL_DELAY = 180.0
REFUND_DELAY = 5.0


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)


class Clock:
    """Deterministic wall clock; every call moves one second forward."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture(autouse=True)
def _reset_log_context():
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def settings():
    return FulfillmentSettings(
        _env_file=None,
        environment="test",
        shipment_delivery_delay=DELIVERY_DELAY,
        return_approval_delay=APPROVAL_DELAY,
        return_refund_delay=REFUND_DELAY,
        store_timeout=1.0,
    )


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    store = InMemoryStore()
    store.seed(
        "customers",
        [
            {"id": "cust-001", "auth_user_id": "auth-alice", "name": "Alice", "email": "alice@example.com"},
            {"id": "cust-002", "auth_user_id": "auth-bob", "name": "Bob", "email": "bob@example.com"},
        ],
    )
    store.seed(
        "products",
        [
            {"id": "P1", "name": "Tea Towel", "price": "10.00", "stock": 5},
            {"id": "P2", "name": "Teapot", "price": "25.00", "stock": 3},
            {"id": "P3", "name": "Mug", "price": "7.50", "stock": 0},
        ],
    )
    return store


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def orchestrator(store, scheduler, settings, clock):
    return FulfillmentOrchestrator(store, scheduler, settings, now=clock)


@pytest.fixture
def cart():
    return [
        {"product_id": "P1", "quantity": 2, "unit_price": "10.00"},
        {"product_id": "P2", "quantity": 1, "unit_price": "25.00"},
    ]
