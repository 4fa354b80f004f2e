"""Order-level tax orchestration.

Ties the TaxCloud client, the address validator and the transaction ledger
together for the three points in an order's life where tax matters: quoting
at checkout, capturing on completion and returning on refund.
"""

import logging
import uuid
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal

from salestax.core.config import Settings
from salestax.core.exceptions import ConfigurationError, InvalidStateError, TaxCloudError
from salestax.schemas.address import Address
from salestax.schemas.order import (
    SHIPPING_ITEM_ID,
    ItemType,
    LineItem,
    OrderItem,
    OrderItemType,
    OrderSnapshot,
    RefundItem,
    TaxCalculationResult,
)
from salestax.schemas.transaction import PackageRecord, TaxStatus, TaxTransaction
from salestax.services.address_validator import AddressValidator
from salestax.services.platform import HostPlatform
from salestax.services.taxcloud.client import TaxCloudClient
from salestax.services.transaction_ledger import TransactionLedger

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

ITEM_TYPES = {
    OrderItemType.LINE_ITEM: ItemType.CART,
    OrderItemType.SHIPPING: ItemType.SHIPPING,
    OrderItemType.FEE: ItemType.FEE,
}


class OrderTaxCoordinator:
    def __init__(
        self,
        client: TaxCloudClient,
        ledger: TransactionLedger,
        address_validator: AddressValidator,
        settings: Settings,
        origin_addresses: list[Address] | None = None,
    ):
        self.client = client
        self.ledger = ledger
        self.address_validator = address_validator
        self.settings = settings
        self.origin_addresses = (
            origin_addresses if origin_addresses is not None else settings.origin_addresses
        )

    def _origin(self, index: int) -> Address:
        if not self.origin_addresses:
            raise ConfigurationError("No business origin addresses are configured")
        if not 0 <= index < len(self.origin_addresses):
            raise ConfigurationError(f"Origin address {index} is not configured")
        return self.origin_addresses[index]

    def _tic(self, item: OrderItem) -> int:
        if item.item_type == OrderItemType.SHIPPING:
            return self.settings.shipping_tic
        if item.item_type == OrderItemType.FEE:
            return self.settings.fee_tic
        if item.tic is not None:
            return item.tic
        return self.settings.default_tic

    def _line_item(self, index: int, item: OrderItem) -> LineItem:
        return LineItem(
            index=index,
            item_id=item.item_id,
            quantity=item.quantity,
            price=item.line_total / item.quantity,
            line_total=item.line_total,
            tic=self._tic(item),
            item_type=ITEM_TYPES[item.item_type],
        )

    def _group_by_origin(self, order: OrderSnapshot) -> dict[int, list[OrderItem]]:
        """Split order items into one group per origin.

        Shipping and fees always travel with the default origin.
        """
        default_index = self.settings.default_origin_index
        groups: dict[int, list[OrderItem]] = defaultdict(list)
        groups[default_index] = []

        for item in order.items:
            index = default_index
            if item.item_type == OrderItemType.LINE_ITEM and item.origin_index is not None:
                index = item.origin_index
            groups[index].append(item)

        if order.shipping_cost > 0:
            groups[default_index].append(
                OrderItem(
                    item_id=SHIPPING_ITEM_ID,
                    item_type=OrderItemType.SHIPPING,
                    line_total=order.shipping_cost,
                )
            )

        return {index: items for index, items in groups.items() if items}

    def _zero_amounts(self, order: OrderSnapshot) -> dict[str, Decimal]:
        amounts = {item.item_id: Decimal("0") for item in order.items}
        if order.shipping_cost > 0:
            amounts[SHIPPING_ITEM_ID] = Decimal("0")
        return amounts

    def _untaxed(
        self, order_id: str, current: TaxStatus, amounts: dict[str, Decimal]
    ) -> TaxCalculationResult:
        """Result for an order that owes no tax; an earlier quote is dropped."""
        if current != TaxStatus.NONE:
            current = self.ledger.clear_quote(order_id).status
        return TaxCalculationResult(order_id=order_id, status=current.value, tax_amounts=amounts)

    def calculate_taxes(self, order: OrderSnapshot) -> TaxCalculationResult:
        """Quote tax for an order and record the quote in the ledger.

        TaxCloud failures do not propagate: the order is marked errored and
        the result carries a warning plus the last known amounts, so checkout
        can continue.

        Raises:
            InvalidStateError: the order has already been captured or returned.
            ConfigurationError: no usable origin address is configured.
        """
        order_id = order.order_id
        current = self.ledger.status(order_id)
        if current in (TaxStatus.CAPTURED, TaxStatus.REFUNDED):
            logger.error("Refusing to recalculate tax for %s order %s", current.value, order_id)
            raise InvalidStateError(
                f"Tax for order {order_id} is already {current.value}",
                current_status=current.value,
                target_status=TaxStatus.PENDING.value,
            )

        default_origin = self._origin(self.settings.default_origin_index)
        if order.local_pickup:
            destination = default_origin
        else:
            destination = self.address_validator.validate(order.destination, order_id)

        if not destination.is_lookup_eligible:
            logger.info("Order %s ships to a non-taxable destination", order_id)
            return self._untaxed(order_id, current, self._zero_amounts(order))

        certificate_id = self.ledger.get(order_id).certificate_id
        groups = self._group_by_origin(order)
        packages: list[PackageRecord] = []
        amounts: dict[str, Decimal] = {}

        try:
            for origin_index, items in groups.items():
                origin = self._origin(origin_index)
                line_items = [self._line_item(i, item) for i, item in enumerate(items)]
                if all(line.extended_price == 0 for line in line_items):
                    amounts.update({line.item_id: Decimal("0") for line in line_items})
                    continue

                cart_id = str(uuid.uuid4())

                amounts.update(
                    self.client.lookup(
                        cart_id=cart_id,
                        origin=origin,
                        destination=destination,
                        items=line_items,
                        customer_id=order.customer_id,
                        exemption_certificate_id=certificate_id,
                    )
                )
                packages.append(
                    PackageRecord(
                        cart_id=cart_id,
                        provider_order_id=(
                            order_id if not packages else f"{order_id}-{len(packages) + 1}"
                        ),
                        origin_index=origin_index,
                        item_ids=[item.item_id for item in items],
                        quantities={item.item_id: item.quantity for item in items},
                    )
                )
        except TaxCloudError as exc:
            logger.warning("Tax lookup for order %s failed: %s", order_id, exc.message)
            previous = self.ledger.get(order_id).line_item_tax_amounts
            self.ledger.record_error(order_id, exc.message)
            return TaxCalculationResult(
                order_id=order_id,
                status=TaxStatus.ERRORED.value,
                tax_amounts=previous or self._zero_amounts(order),
                warning=exc.message,
            )

        if not packages:
            return self._untaxed(order_id, current, amounts)

        txn = self.ledger.record_quote(
            order_id,
            cart_id=packages[0].cart_id,
            destination=destination,
            tax_amounts=amounts,
            packages=packages,
        )
        return TaxCalculationResult(
            order_id=order_id,
            status=txn.status.value,
            tax_amounts=txn.line_item_tax_amounts,
        )

    def capture_order(self, order_id: str) -> bool:
        """Capture a quoted order. Orders in any other state are left alone.

        Returns:
            True if TaxCloud was notified, False if there was nothing to do.
        """
        txn = self.ledger.get(order_id)
        if txn.status != TaxStatus.PENDING:
            logger.info("Not capturing order %s in status %s", order_id, txn.status.value)
            return False

        packages = txn.packages or [
            PackageRecord(cart_id=txn.cart_id or "", provider_order_id=order_id)
        ]
        try:
            for package in packages:
                self.client.authorized_with_capture(package.cart_id, package.provider_order_id)
        except TaxCloudError as exc:
            self.ledger.record_error(order_id, exc.message)
            raise

        self.ledger.record_capture(order_id, packages[0].provider_order_id)
        return True

    def maybe_capture_order(self, order_id: str) -> bool:
        """Capture on payment when the store captures immediately."""
        if not self.settings.capture_immediately:
            return False
        return self.capture_order(order_id)

    def _returned_tax(
        self, txn: TaxTransaction, items: list[RefundItem]
    ) -> dict[str, Decimal]:
        if not items:
            return dict(txn.line_item_tax_amounts)

        returned: dict[str, Decimal] = {}
        for item in items:
            tax = txn.line_item_tax_amounts.get(item.item_id, Decimal("0"))
            package = txn.package_for_item(item.item_id)
            quantity = package.quantities.get(item.item_id) if package else None
            if quantity is None or item.quantity >= quantity:
                returned[item.item_id] = tax
            else:
                returned[item.item_id] = (tax * item.quantity / quantity).quantize(
                    CENT, rounding=ROUND_HALF_UP
                )
        return returned

    def refund_order(
        self, order_id: str, items: list[RefundItem] | None = None
    ) -> TaxTransaction:
        """Return items of a captured order; no items means the whole order.

        A TaxCloud failure is re-raised with the ledger untouched so the host
        can roll its refund back.
        """
        items = items or []
        txn = self.ledger.get(order_id)
        if txn.status != TaxStatus.CAPTURED:
            logger.error("Cannot refund order %s in status %s", order_id, txn.status.value)
            raise InvalidStateError(
                f"Order {order_id} has not been captured",
                current_status=txn.status.value,
                target_status=TaxStatus.REFUNDED.value,
            )

        packages = txn.packages or [
            PackageRecord(
                cart_id=txn.cart_id or "",
                provider_order_id=txn.provider_order_id or order_id,
                item_ids=list(txn.line_item_tax_amounts),
            )
        ]

        if items:
            by_order: dict[str, list[RefundItem]] = defaultdict(list)
            for item in items:
                package = txn.package_for_item(item.item_id) or packages[0]
                by_order[package.provider_order_id].append(item)
            requests = list(by_order.items())
        else:
            requests = [(package.provider_order_id, []) for package in packages]

        try:
            for provider_order_id, package_items in requests:
                self.client.returned(provider_order_id, package_items)
        except TaxCloudError as exc:
            logger.warning("Return for order %s failed: %s", order_id, exc.message)
            raise

        return self.ledger.record_return(order_id, self._returned_tax(txn, items))

    def attach(self, platform: HostPlatform) -> None:
        """Register the lifecycle handlers with the host platform.

        Without configured origin addresses the host's business locations are used.
        """
        if not self.origin_addresses:
            self.origin_addresses = platform.get_configured_origin_addresses()
        platform.on_order_completed(self.capture_order)
        platform.on_payment_complete(self.maybe_capture_order)
        platform.on_refund_created(self.refund_order)
