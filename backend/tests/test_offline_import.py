"""Tests for offline transaction imports."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from salestax.core.exceptions import BatchError
from salestax.schemas.order import LineItem
from salestax.schemas.transaction import OfflineTransaction
from salestax.services.offline_import import OfflineTransactionImporter, chunked
from salestax.services.taxcloud.client import TaxCloudClient
from tests.conftest import DESTINATION, ORIGIN


def _transactions(count: int) -> list[OfflineTransaction]:
    return [
        OfflineTransaction(
            customer_id="42",
            cart_id=f"cart-{n}",
            order_id=f"pos-{n}",
            origin=ORIGIN,
            destination=DESTINATION,
            items=[LineItem(index=0, item_id="A", price=Decimal("10.00"))],
            item_taxes={"A": Decimal("0.95")},
            transaction_date=datetime(2024, 3, 1),
        )
        for n in range(count)
    ]


@pytest.fixture
def client():
    return MagicMock(spec=TaxCloudClient)


class TestChunked:
    def test_sizes(self):
        assert [len(batch) for batch in chunked(_transactions(60))] == [25, 25, 10]

    def test_empty(self):
        assert list(chunked([])) == []


class TestOfflineTransactionImporter:
    def test_imports_in_batches(self, client):
        transactions = _transactions(51)

        submitted = OfflineTransactionImporter(client).import_transactions(transactions)

        assert submitted == 51
        batches = [c.args[0] for c in client.add_transactions.call_args_list]
        assert [len(b) for b in batches] == [25, 25, 1]
        assert batches[2][0].order_id == "pos-50"

    def test_custom_batch_size(self, client):
        OfflineTransactionImporter(client, batch_size=10).import_transactions(_transactions(25))
        assert client.add_transactions.call_count == 3

    def test_batch_size_limit(self, client):
        with pytest.raises(ValueError):
            OfflineTransactionImporter(client, batch_size=26)

    def test_stops_at_rejected_batch(self, client):
        client.add_transactions.side_effect = [True, BatchError("Duplicate order", "add_transactions")]

        with pytest.raises(BatchError):
            OfflineTransactionImporter(client).import_transactions(_transactions(60))
        assert client.add_transactions.call_count == 2
