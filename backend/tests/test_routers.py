"""API tests for the TaxCloud endpoints."""

from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from salestax.core.config import get_settings
from salestax.core.database import get_db
from salestax.main import app
from salestax.repositories.order_meta_repository import OrderMetaRepository
from salestax.services.transaction_ledger import TransactionLedger
from tests.conftest import DESTINATION, lookup_response, make_response, make_settings, patch_httpx


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(settings):
    """Create test client."""
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


VERIFIED_BODY = {"line1": "500 W TEMPLE ST", "city": "LOS ANGELES", "state": "CA", "zip": "90012-3101"}


def _echo_lookup(amounts: list[str]):
    def respond(method, url, **kwargs):
        if url.endswith("verify-address"):
            return make_response(VERIFIED_BODY)
        return lookup_response(kwargs["json"]["items"][0]["cartId"], amounts)

    return respond


ORDER_BODY = {
    "customer_id": "42",
    "destination": DESTINATION.model_dump(),
    "items": [
        {"item_id": "0", "line_total": "10.00"},
        {"item_id": "1", "line_total": "5.00"},
    ],
}


class TestRoot:
    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"


class TestTaxCloudEndpoints:
    def test_ping(self, client: TestClient):
        with patch_httpx(make_response({"code": 200})):
            response = client.get("/v1/taxcloud/ping")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_ping_rejected(self, client: TestClient):
        with patch_httpx(make_response({"code": 401, "message": "Invalid API key"}, 401)):
            response = client.get("/v1/taxcloud/ping")
        assert response.status_code == 422
        assert "Invalid API key" in response.json()["detail"]

    def test_ping_unreachable(self, client: TestClient):
        with patch_httpx(httpx.ConnectError("refused")):
            response = client.get("/v1/taxcloud/ping")
        assert response.status_code == 502

    def test_not_configured(self, client: TestClient):
        app.dependency_overrides[get_settings] = lambda: make_settings(taxcloud_api_key="")
        response = client.get("/v1/taxcloud/ping")
        assert response.status_code == 503

    def test_locations(self, client: TestClient):
        body = {
            "ResponseType": 3,
            "Locations": [{"LocationID": "L1", "Address1": "1 Main St", "Zip5": "98101"}],
        }
        with patch_httpx(make_response(body)):
            response = client.get("/v1/taxcloud/locations")
        assert response.status_code == 200
        assert response.json()[0]["location_id"] == "L1"

    def test_import_transactions(self, client: TestClient):
        txn = {
            "customer_id": "42",
            "cart_id": "c1",
            "order_id": "pos-1",
            "origin": DESTINATION.model_dump(),
            "destination": DESTINATION.model_dump(),
            "items": [{"index": 0, "item_id": "A", "price": "10.00"}],
            "item_taxes": {"A": "0.95"},
            "transaction_date": "2024-03-01T12:00:00",
        }
        with patch_httpx(make_response({"ResponseType": "OK"})):
            response = client.post("/v1/taxcloud/transactions", json=[txn] * 3)
        assert response.status_code == 200
        assert response.json() == {"submitted": 3}

    def test_import_nothing(self, client: TestClient):
        response = client.post("/v1/taxcloud/transactions", json=[])
        assert response.status_code == 400


class TestAddressEndpoints:
    def test_verify(self, client: TestClient):
        with patch_httpx(make_response(VERIFIED_BODY)):
            response = client.post("/v1/addresses/verify", json={"address": DESTINATION.model_dump()})
        assert response.status_code == 200
        data = response.json()
        assert data["line1"] == "500 W TEMPLE ST"
        assert data["country"] == "US"

    def test_verify_failure_returns_original(self, client: TestClient):
        with patch_httpx(make_response({"status": 400, "errors": ["not found"]}, 400)):
            response = client.post("/v1/addresses/verify", json={"address": DESTINATION.model_dump()})
        assert response.status_code == 200
        assert response.json()["line1"] == DESTINATION.line1


class TestTicEndpoints:
    def test_list(self, client: TestClient):
        response = client.get("/v1/tics/")
        assert response.status_code == 200
        data = response.json()
        assert data["0"] == "Uncategorized"
        assert "11010" in data

    def test_describe(self, client: TestClient):
        response = client.get("/v1/tics/11010")
        assert response.status_code == 200
        assert response.json()["tic_id"] == 11010
        assert response.json()["description"]

    def test_describe_unknown(self, client: TestClient):
        response = client.get("/v1/tics/99999999")
        assert response.status_code == 404


class TestCertificateEndpoints:
    CERT_BODY = {
        "exempt_states": ["CA"],
        "purchaser_first_name": "Ada",
        "purchaser_last_name": "Lovelace",
        "purchaser_address": DESTINATION.model_dump(),
        "business_type": "RetailTrade",
        "exemption_reason": "Resale",
    }

    def test_create(self, client: TestClient):
        with patch_httpx(make_response({"certificateId": "cert-1"})) as mock_client:
            response = client.post("/v1/customers/42/certificates", json=self.CERT_BODY)
        assert response.status_code == 201
        assert response.json() == {"certificate_id": "cert-1"}
        assert mock_client.request.call_args.kwargs["json"]["customerId"] == "42"

    def test_create_requires_states(self, client: TestClient):
        response = client.post(
            "/v1/customers/42/certificates", json={**self.CERT_BODY, "exempt_states": []}
        )
        assert response.status_code == 422

    def test_list(self, client: TestClient):
        body = {"items": [{"certificateId": "cert-1", "customerId": "42", "reason": "Resale"}]}
        with patch_httpx(make_response(body)):
            response = client.get("/v1/customers/42/certificates")
        assert response.status_code == 200
        assert response.json()[0]["certificate_id"] == "cert-1"

    def test_delete(self, client: TestClient):
        with patch_httpx(make_response(None, 204)) as mock_client:
            response = client.delete("/v1/customers/42/certificates/cert-1")
        assert response.status_code == 204
        assert mock_client.request.call_args.args[0] == "DELETE"
        assert mock_client.request.call_count == 1

    def test_delete_unknown(self, client: TestClient):
        body = {"status": 404, "errors": ["Certificate not found"]}
        with patch_httpx(make_response(body, 404)):
            response = client.delete("/v1/customers/42/certificates/cert-9")
        assert response.status_code == 404

    def test_delete_rejected(self, client: TestClient):
        body = {"status": 400, "errors": ["Certificate is in use"]}
        with patch_httpx(make_response(body, 400)):
            response = client.delete("/v1/customers/42/certificates/cert-1")
        assert response.status_code == 422

    def test_delete_detaches_from_open_orders(self, client: TestClient, db_session):
        ledger = TransactionLedger(OrderMetaRepository(db_session))
        ledger.set_certificate("1001", "cert-1")
        ledger.set_certificate("1002", "cert-1")
        ledger.record_quote("1002", "cart-2", DESTINATION, {"0": Decimal("1.00")})
        ledger.record_capture("1002", "1002")
        ledger.set_certificate("1003", "cert-2")

        with patch_httpx(make_response(None, 204)):
            response = client.delete("/v1/customers/42/certificates/cert-1")
        assert response.status_code == 204

        assert client.get("/v1/orders/1001/tax").json()["certificate_id"] is None
        assert client.get("/v1/orders/1002/tax").json()["certificate_id"] == "cert-1"
        assert client.get("/v1/orders/1003/tax").json()["certificate_id"] == "cert-2"

class TestOrderEndpoints:
    def test_lookup_capture_refund(self, client: TestClient):
        with patch_httpx() as mock_client:
            mock_client.request.side_effect = _echo_lookup(["1.75", "0.25"])
            response = client.post("/v1/orders/1001/lookup", json=ORDER_BODY)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert Decimal(data["tax_amounts"]["0"]) == Decimal("1.75")
        assert Decimal(data["total_tax"]) == Decimal("2.00")
        assert Decimal(data["shipping_tax"]) == Decimal("0")

        with patch_httpx(make_response({})):
            response = client.post("/v1/orders/1001/capture")
        assert response.status_code == 200
        assert response.json()["status"] == "captured"

        with patch_httpx(make_response({})):
            response = client.post(
                "/v1/orders/1001/refunds", json={"items": [{"item_id": "0", "quantity": "1"}]}
            )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "refunded"
        assert Decimal(data["returned_tax_amounts"]["0"]) == Decimal("1.75")

        response = client.get("/v1/orders/1001/tax")
        assert response.json()["status"] == "refunded"

    def test_lookup_failure_is_warning(self, client: TestClient):
        with patch_httpx(httpx.ReadTimeout("slow"), httpx.ReadTimeout("slow")):
            response = client.post("/v1/orders/1001/lookup", json=ORDER_BODY)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "errored"
        assert data["warning"]

    def test_lookup_after_capture_conflicts(self, client: TestClient, db_session):
        ledger = TransactionLedger(OrderMetaRepository(db_session))
        ledger.record_quote("1001", "cart-1", DESTINATION, {"0": Decimal("1.00")})
        ledger.record_capture("1001", "1001")

        response = client.post("/v1/orders/1001/lookup", json=ORDER_BODY)
        assert response.status_code == 409

    def test_capture_unquoted_is_noop(self, client: TestClient):
        with patch_httpx() as mock_client:
            response = client.post("/v1/orders/1001/capture")
        assert response.status_code == 200
        assert response.json()["status"] == "none"
        mock_client.request.assert_not_called()

    def test_capture_rejected(self, client: TestClient, db_session):
        ledger = TransactionLedger(OrderMetaRepository(db_session))
        ledger.record_quote("1001", "cart-1", DESTINATION, {"0": Decimal("1.00")})

        with patch_httpx(make_response({"status": 400, "errors": ["cart expired"]}, 400)):
            response = client.post("/v1/orders/1001/capture")
        assert response.status_code == 422
        assert ledger.status("1001").value == "errored"

    def test_refund_before_capture(self, client: TestClient):
        response = client.post("/v1/orders/1001/refunds", json={"items": []})
        assert response.status_code == 409

    def test_certificate(self, client: TestClient):
        response = client.put("/v1/orders/1001/certificate", json={"certificate_id": "cert-1"})
        assert response.status_code == 200
        assert response.json()["certificate_id"] == "cert-1"

    def test_certificate_locked_after_capture(self, client: TestClient, db_session):
        ledger = TransactionLedger(OrderMetaRepository(db_session))
        ledger.record_quote("1001", "cart-1", DESTINATION, {"0": Decimal("1.00")})
        ledger.record_capture("1001", "1001")

        response = client.put("/v1/orders/1001/certificate", json={"certificate_id": "cert-1"})
        assert response.status_code == 409
