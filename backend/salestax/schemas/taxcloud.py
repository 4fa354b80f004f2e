"""Request types for the TaxCloud API.

Each operation has its own request model. A request knows its HTTP method,
its path relative to the API root, and how to build its JSON body; the
client only sends what the request produces.
"""

from datetime import date
from decimal import Decimal
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field

from salestax.schemas.address import Address
from salestax.schemas.certificate import REASON_TO_WIRE, ExemptionCertificate
from salestax.schemas.order import LineItem, RefundItem
from salestax.schemas.transaction import OfflineTransaction

MAX_OFFLINE_BATCH = 25

TaxBasedOn = Literal["item-price", "line-price"]


def wire_number(value: Decimal) -> int | float:
    """JSON number for a decimal; integral values stay integers."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


class TaxCloudRequest(BaseModel):
    """Base request: v3 endpoints unless ``legacy`` is set."""

    operation: ClassVar[str] = ""
    method: ClassVar[str] = "POST"
    legacy: ClassVar[bool] = False

    def path(self, connection_id: str) -> str:
        raise NotImplementedError  # pragma: no cover

    def build_payload(self) -> dict[str, Any] | None:
        return None

    def query_params(self, connection_id: str) -> dict[str, Any] | None:
        return None


class PingRequest(TaxCloudRequest):
    operation: ClassVar[str] = "ping"
    method: ClassVar[str] = "GET"

    def path(self, connection_id: str) -> str:
        return f"connections/{connection_id}/ping"


class VerifyAddressRequest(TaxCloudRequest):
    operation: ClassVar[str] = "verify_address"

    address: Address

    def path(self, connection_id: str) -> str:
        return "verify-address"

    def build_payload(self) -> dict[str, Any]:
        return self.address.to_wire()


class LookupRequest(TaxCloudRequest):
    """Cart lookup.

    Items whose extended price is zero are left out of the request; the
    provider returns tax lines in the order items were submitted.
    """

    operation: ClassVar[str] = "lookup"

    cart_id: str
    customer_id: str = ""
    origin: Address
    destination: Address
    items: list[LineItem]
    tax_based_on: TaxBasedOn = "item-price"
    exemption_certificate_id: str | None = None
    delivered_by_seller: bool = False

    def path(self, connection_id: str) -> str:
        return f"connections/{connection_id}/carts"

    def submitted_items(self) -> list[LineItem]:
        return [item for item in self.items if item.extended_price != 0]

    def _line_item(self, item: LineItem) -> dict[str, Any]:
        if self.tax_based_on == "line-price":
            quantity = Decimal("1")
            price = item.extended_price
        else:
            quantity = item.quantity
            price = item.extended_price / item.quantity

        return {
            "index": item.index,
            "itemId": item.item_id,
            "price": float(price),
            "quantity": wire_number(quantity),
            "tic": int(item.tic or 0),
        }

    def _cart(self) -> dict[str, Any]:
        cart: dict[str, Any] = {
            "cartId": self.cart_id,
            "currency": {"currencyCode": "USD"},
            # Guest checkouts still need a customer ID
            "customerId": self.customer_id or "customer-0",
            "deliveredBySeller": self.delivered_by_seller,
            "destination": self.destination.to_wire(),
            "origin": self.origin.to_wire(),
            "lineItems": [self._line_item(item) for item in self.submitted_items()],
        }
        if self.exemption_certificate_id:
            cart["exemption"] = {
                "exemptionId": self.exemption_certificate_id,
                "isExempt": True,
            }
        return cart

    def build_payload(self) -> dict[str, Any]:
        return {"items": [self._cart()]}


class LookupForDateRequest(LookupRequest):
    """Lookup as of a given date; the provider resolves effective rates."""

    operation: ClassVar[str] = "lookup_for_date"

    use_date: date

    def _cart(self) -> dict[str, Any]:
        cart = super()._cart()
        cart["useDate"] = self.use_date.isoformat()
        return cart


class OrderRequest(TaxCloudRequest):
    """Convert a looked-up cart into an order (``carts/orders``)."""

    completed: ClassVar[bool] = True

    cart_id: str
    order_id: str

    def path(self, connection_id: str) -> str:
        return f"connections/{connection_id}/carts/orders"

    def build_payload(self) -> dict[str, Any]:
        return {
            "cartId": self.cart_id,
            "completed": self.completed,
            "orderId": self.order_id,
        }


class AuthorizedRequest(OrderRequest):
    operation: ClassVar[str] = "authorized"
    completed: ClassVar[bool] = False


class AuthorizedWithCaptureRequest(OrderRequest):
    operation: ClassVar[str] = "authorized_with_capture"


class CapturedRequest(OrderRequest):
    operation: ClassVar[str] = "captured"


class ReturnedRequest(TaxCloudRequest):
    """Return some items of an order, or the whole order when ``items`` is empty."""

    operation: ClassVar[str] = "returned"

    order_id: str
    items: list[RefundItem] = Field(default_factory=list)
    returned_date: date | None = None

    @property
    def full_return(self) -> bool:
        return not self.items

    def path(self, connection_id: str) -> str:
        return f"connections/{connection_id}/orders/refunds/{self.order_id}"

    def build_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if not self.full_return:
            payload["items"] = [
                {"itemId": item.item_id, "quantity": wire_number(item.quantity)}
                for item in self.items
            ]
        if self.returned_date is not None:
            payload["returnedDate"] = self.returned_date.isoformat()
        return payload


class AddExemptCertificateRequest(TaxCloudRequest):
    operation: ClassVar[str] = "add_exempt_certificate"

    certificate: ExemptionCertificate

    def path(self, connection_id: str) -> str:
        return f"connections/{connection_id}/exemption-certificates"

    def build_payload(self) -> dict[str, Any]:
        cert = self.certificate
        address = cert.purchaser_address
        return {
            "customerId": cert.customer_id,
            "address": {
                "city": address.city,
                "countryCode": "US",
                "line1": address.line1,
                "line2": address.line2,
                "state": address.state,
                "zip": address.zip,
            },
            "customerBusinessDescription": cert.business_type_other,
            "customerBusinessType": cert.business_type.value,
            "customerName": cert.purchaser_name,
            "reason": REASON_TO_WIRE[cert.exemption_reason],
            "reasonDescription": cert.exemption_reason_other,
            "singlePurchase": cert.single_purchase,
            "states": [{"abbreviation": state} for state in cert.exempt_states],
        }


class DeleteExemptCertificateRequest(TaxCloudRequest):
    operation: ClassVar[str] = "delete_exempt_certificate"
    method: ClassVar[str] = "DELETE"

    certificate_id: str

    def path(self, connection_id: str) -> str:
        return f"connections/{connection_id}/exemption-certificates/{self.certificate_id}"


class GetExemptCertificatesRequest(TaxCloudRequest):
    operation: ClassVar[str] = "get_exempt_certificates"
    method: ClassVar[str] = "GET"

    customer_id: str
    limit: int = 100

    def path(self, connection_id: str) -> str:
        return "exemption-certificates"

    def query_params(self, connection_id: str) -> dict[str, Any]:
        return {
            "customerId": self.customer_id,
            "limit": self.limit,
            "connectionId": connection_id,
        }


class LegacyRequest(TaxCloudRequest):
    """v1 endpoints authenticate with credentials in the body."""

    legacy: ClassVar[bool] = True

    api_login_id: str
    api_key: str

    def credentials(self) -> dict[str, str]:
        return {"apiLoginID": self.api_login_id, "apiKey": self.api_key}


class GetLocationsRequest(LegacyRequest):
    operation: ClassVar[str] = "get_locations"

    def path(self, connection_id: str) -> str:
        return "GetLocations"

    def build_payload(self) -> dict[str, Any]:
        return self.credentials()


class AddTransactionsRequest(LegacyRequest):
    operation: ClassVar[str] = "add_transactions"

    transactions: list[OfflineTransaction]

    def path(self, connection_id: str) -> str:
        return "AddTransactions"

    @staticmethod
    def _transaction(txn: OfflineTransaction) -> dict[str, Any]:
        return {
            "customerID": txn.customer_id,
            "cartID": txn.cart_id,
            "orderID": txn.order_id,
            "deliveredBySeller": False,
            "origin": txn.origin.to_legacy_wire(),
            "destination": txn.destination.to_legacy_wire(),
            "cartItems": [
                {
                    "Index": item.index,
                    "ItemID": item.item_id,
                    "TIC": int(item.tic or 0),
                    "Price": float(item.price),
                    "Qty": wire_number(item.quantity),
                    "Tax": float(txn.item_taxes.get(item.item_id, Decimal("0"))),
                }
                for item in txn.items
            ],
            "dateTransaction": txn.transaction_date.isoformat(),
            "dateAuthorized": (txn.authorized_date or txn.transaction_date).isoformat(),
            "dateCaptured": (txn.captured_date or txn.transaction_date).isoformat(),
        }

    def build_payload(self) -> dict[str, Any]:
        return {
            **self.credentials(),
            "transactions": [self._transaction(txn) for txn in self.transactions],
        }
