"""Shared test fixtures for all test modules."""

import contextlib
import json
from collections.abc import Iterator
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import salestax.models  # noqa: F401
from salestax.core import database as db_module
from salestax.core.config import Settings
from salestax.core.database import Base
from salestax.schemas.address import Address
from salestax.schemas.order import OrderItem, OrderTaxLine
from salestax.services.platform import EventDispatcher

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

ORIGIN = Address(line1="1 Main St", city="Seattle", state="WA", zip5="98101")
SECOND_ORIGIN = Address(line1="200 Pine St", city="Reno", state="NV", zip5="89501")
DESTINATION = Address(
    line1="500 W Temple St", city="Los Angeles", state="CA", zip5="90012", zip4="3101"
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and drop all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "taxcloud_connection_id": "conn-123",
        "taxcloud_api_key": "key-abc",
        "origin_addresses": [ORIGIN],
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


def make_response(
    body: Any = None, status_code: int = 200, text: str | None = None
) -> MagicMock:
    """Build a mock httpx response."""
    resp = MagicMock()
    resp.status_code = status_code
    if body is None:
        resp.json.side_effect = ValueError("No JSON body")
        resp.text = text or ""
    else:
        resp.json.return_value = body
        resp.text = text if text is not None else json.dumps(body)
    return resp


def lookup_response(cart_id: str, amounts: list[str]) -> MagicMock:
    """Mock a v3 cart lookup answer with one tax line per amount."""
    return make_response(
        {
            "connectionId": "conn-123",
            "items": [
                {
                    "cartId": cart_id,
                    "lineItems": [
                        {"index": i, "tax": {"amount": float(amount), "rate": 0.0725}}
                        for i, amount in enumerate(amounts)
                    ],
                }
            ],
        }
    )


@contextlib.contextmanager
def patch_httpx(*responses: Any) -> Iterator[MagicMock]:
    """Patch httpx.Client in the TaxCloud client; each request consumes one response.

    A response that is an exception instance is raised instead.
    """
    with patch("salestax.services.taxcloud.client.httpx.Client") as mock_client_cls:
        mock_client = MagicMock()
        mock_client.__enter__ = MagicMock(return_value=mock_client)
        mock_client.__exit__ = MagicMock(return_value=False)
        mock_client.request.side_effect = list(responses)
        mock_client_cls.return_value = mock_client
        yield mock_client


def sent_json(mock_client: MagicMock, call_index: int = 0) -> Any:
    return mock_client.request.call_args_list[call_index].kwargs["json"]


class MemoryMetaStore:
    """Order meta kept in a dict. Values go through JSON like a real store."""

    def __init__(self) -> None:
        self.meta: dict[tuple[str, str], Any] = {}

    def get_order_meta(self, order_id: str, key: str) -> Any:
        value = self.meta.get((order_id, key))
        if value is None:
            return None
        return json.loads(value)

    def set_order_meta(self, order_id: str, key: str, value: Any) -> None:
        self.meta[(order_id, key)] = json.dumps(value)


class FakePlatform(EventDispatcher, MemoryMetaStore):
    """In-memory host platform."""

    def __init__(self, origins: list[Address] | None = None) -> None:
        EventDispatcher.__init__(self)
        MemoryMetaStore.__init__(self)
        self.origins = origins if origins is not None else [ORIGIN]
        self.items: dict[str, list[OrderItem]] = {}
        self.shipping: dict[str, Decimal] = {}
        self.destinations: dict[str, Address] = {}
        self.customers: dict[str, str] = {}
        self.statuses: dict[str, str] = {}
        self.notes: dict[str, list[str]] = {}
        self.tax_lines: dict[str, list[OrderTaxLine]] = {}

    def add_order(
        self,
        order_id: str,
        items: list[OrderItem],
        destination: Address = DESTINATION,
        shipping_cost: Decimal = Decimal("0"),
        customer_id: str = "42",
    ) -> None:
        self.items[order_id] = items
        self.destinations[order_id] = destination
        self.shipping[order_id] = shipping_cost
        self.customers[order_id] = customer_id
        self.statuses[order_id] = "processing"

    def get_order_line_items(self, order_id: str) -> list[OrderItem]:
        return self.items[order_id]

    def get_order_shipping_cost(self, order_id: str) -> Decimal:
        return self.shipping.get(order_id, Decimal("0"))

    def get_order_destination(self, order_id: str) -> Address:
        return self.destinations[order_id]

    def get_order_customer_id(self, order_id: str) -> str:
        return self.customers.get(order_id, "")

    def update_order_status(self, order_id: str, status: str) -> None:
        self.statuses[order_id] = status
        if status == "completed":
            self.order_completed(order_id)

    def add_order_note(self, order_id: str, note: str) -> None:
        self.notes.setdefault(order_id, []).append(note)

    def get_order_tax_lines(self, order_id: str) -> list[OrderTaxLine]:
        return list(self.tax_lines.get(order_id, []))

    def delete_order_tax_line(self, order_id: str, tax_line_id: str) -> None:
        self.tax_lines[order_id] = [
            line for line in self.tax_lines.get(order_id, []) if line.tax_line_id != tax_line_id
        ]

    def get_configured_origin_addresses(self) -> list[Address]:
        return self.origins
