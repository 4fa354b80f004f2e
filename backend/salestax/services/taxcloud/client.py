"""TaxCloud API client.

Stateless: every method builds one request model, sends it, and maps the
JSON answer to a typed result. Transport problems surface as
``TransportError``; answers in which TaxCloud reports a failure surface as the
operation's ``ProviderBusinessError`` subclass with the provider's message.
"""

import json
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from salestax.core.config import Settings
from salestax.core.exceptions import (
    AddressError,
    AuthorizationError,
    BatchError,
    BatchLimitError,
    CaptureError,
    CertificateError,
    ConfigurationError,
    LocationError,
    PingError,
    ProviderBusinessError,
    ReturnError,
    TaxLookupError,
    TransportError,
)
from salestax.schemas.address import Address, Location, parse_zip
from salestax.schemas.certificate import ExemptionCertificate
from salestax.schemas.order import LineItem, RefundItem
from salestax.schemas.taxcloud import (
    MAX_OFFLINE_BATCH,
    AddExemptCertificateRequest,
    AddTransactionsRequest,
    AuthorizedRequest,
    AuthorizedWithCaptureRequest,
    CapturedRequest,
    DeleteExemptCertificateRequest,
    GetExemptCertificatesRequest,
    GetLocationsRequest,
    LookupForDateRequest,
    LookupRequest,
    PingRequest,
    ReturnedRequest,
    TaxBasedOn,
    TaxCloudRequest,
    VerifyAddressRequest,
)
from salestax.schemas.transaction import OfflineTransaction
from salestax.services.taxcloud.tics import TicCatalog, default_catalog

logger = logging.getLogger(__name__)

LEGACY_RESPONSE_OK = {3, "3", "OK"}


def _error_message(errors: Any) -> str:
    if isinstance(errors, str):
        return errors
    return json.dumps(errors)


def provider_error_message(body: Any) -> str | None:
    """Return the provider's error message if ``body`` reports a failure."""
    if not isinstance(body, dict):
        return None

    if "status" in body and "errors" in body:
        return _error_message(body["errors"])

    status = body.get("status")
    if isinstance(status, int) and status >= 400:
        return _error_message(body.get("detail") or body.get("title") or status)

    code = body.get("code")
    if code is not None and code != 200:
        return _error_message(body.get("message", code))

    if "ResponseType" in body and body["ResponseType"] not in LEGACY_RESPONSE_OK:
        messages = body.get("Messages") or []
        if messages:
            return str(messages[0].get("Message", ""))
        return f"TaxCloud returned response type {body['ResponseType']}"

    return None


class TaxCloudClient:
    """Client for the TaxCloud v3 API and the legacy v1 endpoints it still needs."""

    def __init__(
        self,
        connection_id: str,
        api_key: str,
        api_url: str = "https://api.v3.taxcloud.com/tax/",
        legacy_api_url: str = "https://api.taxcloud.net/1.0/TaxCloud/",
        timeout: float = 30.0,
        tax_based_on: TaxBasedOn = "item-price",
        tic_catalog: TicCatalog | None = None,
    ):
        if not connection_id or not api_key:
            raise ConfigurationError(
                "TaxCloud connection ID and API key must be configured"
            )

        self.connection_id = connection_id
        self.api_key = api_key
        self.api_url = api_url.rstrip("/") + "/"
        self.legacy_api_url = legacy_api_url.rstrip("/") + "/"
        self.timeout = timeout
        self.tax_based_on = tax_based_on
        self.tic_catalog = tic_catalog or default_catalog

    @classmethod
    def from_settings(cls, settings: Settings) -> "TaxCloudClient":
        return cls(
            connection_id=settings.taxcloud_connection_id,
            api_key=settings.taxcloud_api_key,
            api_url=settings.taxcloud_api_url,
            legacy_api_url=settings.taxcloud_legacy_api_url,
            timeout=settings.taxcloud_request_timeout,
            tax_based_on=settings.tax_based_on,
        )

    def _url(self, request: TaxCloudRequest) -> str:
        base = self.legacy_api_url if request.legacy else self.api_url
        return f"{base}{request.path(self.connection_id)}"

    def _headers(self, request: TaxCloudRequest) -> dict[str, str]:
        headers = {
            "Accept": "application/json, application/problem+json",
            "Content-Type": "application/json",
        }
        if not request.legacy:
            headers["X-API-KEY"] = self.api_key
        return headers

    def _send(
        self,
        request: TaxCloudRequest,
        error_cls: type[ProviderBusinessError],
    ) -> dict[str, Any]:
        """Send ``request`` and return the decoded JSON body.

        Raises:
            TransportError: the request failed or the server errored without
                a provider payload.
            error_cls: TaxCloud reported a failure for the request.
        """
        operation = request.operation
        url = self._url(request)
        logger.debug("TaxCloud %s %s", request.method, url)

        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.request(
                    request.method,
                    url,
                    json=request.build_payload(),
                    params=request.query_params(self.connection_id),
                    headers=self._headers(request),
                )
        except httpx.HTTPError as exc:
            logger.warning("TaxCloud %s request failed: %s", operation, exc)
            raise TransportError(
                f"TaxCloud {operation} request failed: {exc}", operation
            ) from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        message = provider_error_message(body)
        if message is not None:
            logger.warning("TaxCloud %s rejected: %s", operation, message)
            raise error_cls(message, operation, status_code=resp.status_code)

        if resp.status_code >= 500:
            raise TransportError(
                f"TaxCloud {operation} failed with HTTP {resp.status_code}",
                operation,
                status_code=resp.status_code,
            )
        if resp.status_code >= 400:
            raise error_cls(
                resp.text or f"HTTP {resp.status_code}", operation, status_code=resp.status_code
            )

        if body is None:
            return {}
        if not isinstance(body, dict):
            return {"items": body}
        return body

    def ping(self) -> bool:
        """Verify that the credentials are accepted."""
        self._send(PingRequest(), PingError)
        return True

    def verify_address(self, address: Address) -> Address:
        """Normalize ``address``. The result has no country; callers restore it."""
        body = self._send(VerifyAddressRequest(address=address), AddressError)

        try:
            zip5, zip4 = parse_zip(str(body["zip"]))
            return Address(
                line1=body.get("line1") or "",
                line2=body.get("line2") or "",
                city=body.get("city") or "",
                state=body.get("state") or "",
                zip5=zip5,
                zip4=zip4,
                country="",
            )
        except KeyError as exc:
            raise AddressError(
                f"Unexpected verify-address response: {body}", "verify_address"
            ) from exc

    def _lookup(self, request: LookupRequest) -> dict[str, Decimal]:
        amounts = {item.item_id: Decimal("0") for item in request.items}
        submitted = request.submitted_items()
        if not submitted:
            return amounts

        body = self._send(request, TaxLookupError)

        try:
            cart = body["items"][0]
            lines = cart["lineItems"]
        except (KeyError, IndexError, TypeError) as exc:
            raise TaxLookupError(
                f"Unexpected lookup response: {body}", request.operation
            ) from exc

        if cart.get("cartId") not in (None, request.cart_id):
            raise TaxLookupError(
                f"Lookup response is for cart {cart['cartId']}, expected {request.cart_id}",
                request.operation,
            )
        if len(lines) != len(submitted):
            raise TaxLookupError(
                f"Lookup returned {len(lines)} line items for {len(submitted)} submitted",
                request.operation,
            )

        # Tax lines come back in submission order
        try:
            for item, line in zip(submitted, lines, strict=True):
                amounts[item.item_id] = Decimal(str(line["tax"]["amount"]))
        except (KeyError, TypeError, InvalidOperation) as exc:
            raise TaxLookupError(
                f"Unexpected lookup line item in response: {body}", request.operation
            ) from exc

        return amounts

    def lookup(
        self,
        cart_id: str,
        origin: Address,
        destination: Address,
        items: list[LineItem],
        customer_id: str = "",
        exemption_certificate_id: str | None = None,
    ) -> dict[str, Decimal]:
        """Look up tax for a cart.

        Returns:
            Tax amount per item ID. Items with zero cost are not sent and
            always map to zero.
        """
        request = LookupRequest(
            cart_id=cart_id,
            customer_id=customer_id,
            origin=origin,
            destination=destination,
            items=items,
            tax_based_on=self.tax_based_on,
            exemption_certificate_id=exemption_certificate_id,
        )
        return self._lookup(request)

    def lookup_for_date(
        self,
        cart_id: str,
        origin: Address,
        destination: Address,
        items: list[LineItem],
        use_date: date,
        customer_id: str = "",
        exemption_certificate_id: str | None = None,
    ) -> dict[str, Decimal]:
        """Look up tax for a cart as of ``use_date``."""
        request = LookupForDateRequest(
            cart_id=cart_id,
            customer_id=customer_id,
            origin=origin,
            destination=destination,
            items=items,
            tax_based_on=self.tax_based_on,
            exemption_certificate_id=exemption_certificate_id,
            use_date=use_date,
        )
        return self._lookup(request)

    def authorized(self, cart_id: str, order_id: str) -> bool:
        """Mark a looked-up cart as an authorized (uncaptured) order."""
        self._send(AuthorizedRequest(cart_id=cart_id, order_id=order_id), AuthorizationError)
        return True

    def authorized_with_capture(self, cart_id: str, order_id: str) -> bool:
        """Authorize and capture in one step.

        TaxCloud upserts by order ID, so repeating the call for the same
        order does not double count.
        """
        self._send(
            AuthorizedWithCaptureRequest(cart_id=cart_id, order_id=order_id), CaptureError
        )
        logger.info("Captured TaxCloud order %s (cart %s)", order_id, cart_id)
        return True

    def captured(self, cart_id: str, order_id: str) -> bool:
        """Capture a previously authorized order."""
        self._send(CapturedRequest(cart_id=cart_id, order_id=order_id), CaptureError)
        logger.info("Captured TaxCloud order %s (cart %s)", order_id, cart_id)
        return True

    def returned(
        self,
        order_id: str,
        items: list[RefundItem],
        returned_date: date | None = None,
    ) -> bool:
        """Return items of a captured order. An empty ``items`` list returns the whole order."""
        request = ReturnedRequest(order_id=order_id, items=items, returned_date=returned_date)
        self._send(request, ReturnError)
        logger.info(
            "Returned %s of TaxCloud order %s",
            "all items" if request.full_return else f"{len(items)} item(s)",
            order_id,
        )
        return True

    def add_exempt_certificate(self, certificate: ExemptionCertificate) -> str:
        """Create a certificate and return the provider-assigned ID."""
        body = self._send(AddExemptCertificateRequest(certificate=certificate), CertificateError)
        certificate_id = body.get("certificateId")
        if not certificate_id:
            raise CertificateError(
                f"No certificate ID in response: {body}", "add_exempt_certificate"
            )
        return str(certificate_id)

    def delete_exempt_certificate(self, certificate_id: str) -> bool:
        self._send(DeleteExemptCertificateRequest(certificate_id=certificate_id), CertificateError)
        return True

    def get_exempt_certificates(self, customer_id: str) -> list[ExemptionCertificate]:
        body = self._send(GetExemptCertificatesRequest(customer_id=customer_id), CertificateError)
        if "items" not in body:
            raise CertificateError(
                f"Unexpected exemption-certificates response: {body}",
                "get_exempt_certificates",
            )
        return [ExemptionCertificate.from_wire(item) for item in body["items"]]

    def get_tics(self) -> dict[int, str]:
        """TIC id -> description. Served from the bundled catalog; never fails."""
        return self.tic_catalog.get_all()

    def get_locations(self) -> list[Location]:
        request = GetLocationsRequest(api_login_id=self.connection_id, api_key=self.api_key)
        body = self._send(request, LocationError)

        locations = []
        for raw in body.get("Locations") or []:
            locations.append(
                Location(
                    location_id=str(raw.get("LocationID", "")),
                    address=Address(
                        line1=raw.get("Address1") or "",
                        line2=raw.get("Address2") or "",
                        city=raw.get("City") or "",
                        state=raw.get("State") or "",
                        zip5=raw.get("Zip5") or "",
                        zip4=raw.get("Zip4") or "",
                    ),
                )
            )
        return locations

    def add_transactions(self, transactions: list[OfflineTransaction]) -> bool:
        """Import up to 25 offline transactions; larger batches are rejected before sending."""
        if len(transactions) > MAX_OFFLINE_BATCH:
            raise BatchLimitError(len(transactions), MAX_OFFLINE_BATCH)
        if not transactions:
            return True

        request = AddTransactionsRequest(
            api_login_id=self.connection_id,
            api_key=self.api_key,
            transactions=transactions,
        )
        self._send(request, BatchError)
        logger.info("Imported %d offline transactions", len(transactions))
        return True
