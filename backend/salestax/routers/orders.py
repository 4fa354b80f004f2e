"""Order tax endpoints: lookup, capture, refund and exemption."""

from fastapi import APIRouter, Depends

from salestax.core.dependencies import get_coordinator, get_ledger, http_error
from salestax.core.exceptions import ConfigurationError, InvalidStateError, TaxCloudError
from salestax.schemas.certificate import OrderCertificateRequest
from salestax.schemas.order import (
    OrderLookupRequest,
    OrderSnapshot,
    RefundRequest,
    TaxCalculationResult,
)
from salestax.schemas.transaction import TaxTransaction
from salestax.services.order_tax_coordinator import OrderTaxCoordinator
from salestax.services.transaction_ledger import TransactionLedger

router = APIRouter()


@router.post(
    "/{order_id}/lookup",
    response_model=TaxCalculationResult,
    summary="Calculate order tax",
    responses={
        409: {"description": "Order tax already captured or returned"},
        503: {"description": "TaxCloud or origin addresses not configured"},
    },
)
async def lookup_order_tax(
    order_id: str,
    data: OrderLookupRequest,
    coordinator: OrderTaxCoordinator = Depends(get_coordinator),
) -> TaxCalculationResult:
    """Quote tax for an order.

    TaxCloud failures do not fail the request; the result carries a warning
    and the order is marked errored.
    """
    order = OrderSnapshot(order_id=order_id, **data.model_dump())
    try:
        return coordinator.calculate_taxes(order)
    except (InvalidStateError, ConfigurationError) as e:
        raise http_error(e) from None


@router.post(
    "/{order_id}/capture",
    response_model=TaxTransaction,
    summary="Capture order tax",
    responses={
        422: {"description": "Capture rejected by TaxCloud"},
        502: {"description": "TaxCloud unreachable"},
    },
)
async def capture_order_tax(
    order_id: str,
    coordinator: OrderTaxCoordinator = Depends(get_coordinator),
) -> TaxTransaction:
    """Capture a quoted order. Orders that are not pending are returned unchanged."""
    try:
        coordinator.capture_order(order_id)
    except TaxCloudError as e:
        raise http_error(e) from None
    return coordinator.ledger.get(order_id)


@router.post(
    "/{order_id}/refunds",
    response_model=TaxTransaction,
    summary="Return order items",
    responses={
        409: {"description": "Order tax not captured"},
        422: {"description": "Return rejected by TaxCloud"},
        502: {"description": "TaxCloud unreachable"},
    },
)
async def refund_order_tax(
    order_id: str,
    data: RefundRequest,
    coordinator: OrderTaxCoordinator = Depends(get_coordinator),
) -> TaxTransaction:
    """Return items of a captured order. An empty item list returns the whole order."""
    try:
        return coordinator.refund_order(order_id, data.items)
    except (TaxCloudError, InvalidStateError) as e:
        raise http_error(e) from None


@router.get(
    "/{order_id}/tax",
    response_model=TaxTransaction,
    summary="Get order tax transaction",
)
async def get_order_tax(
    order_id: str,
    ledger: TransactionLedger = Depends(get_ledger),
) -> TaxTransaction:
    return ledger.get(order_id)


@router.put(
    "/{order_id}/certificate",
    response_model=TaxTransaction,
    summary="Set order exemption certificate",
    responses={409: {"description": "Order tax already captured or returned"}},
)
async def set_order_certificate(
    order_id: str,
    data: OrderCertificateRequest,
    ledger: TransactionLedger = Depends(get_ledger),
) -> TaxTransaction:
    """Attach an exemption certificate to an order, or clear it with ``null``."""
    try:
        return ledger.set_certificate(order_id, data.certificate_id)
    except InvalidStateError as e:
        raise http_error(e) from None
