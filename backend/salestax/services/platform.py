"""Interfaces to the host commerce platform.

The tax core never reaches into the host's order storage directly. It reads
orders and writes order meta through ``HostPlatform`` and registers its
lifecycle handlers through the ``on_*`` methods.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from decimal import Decimal
from typing import Any, Protocol

from salestax.schemas.address import Address
from salestax.schemas.order import OrderItem, OrderSnapshot, OrderTaxLine, RefundItem

logger = logging.getLogger(__name__)

OrderHandler = Callable[[str], Any]
RefundHandler = Callable[[str, list[RefundItem]], Any]


class OrderMetaStore(Protocol):
    """Key/value storage attached to an order."""

    def get_order_meta(self, order_id: str, key: str) -> Any:
        """Return the stored value, or None when the key was never set."""
        ...

    def set_order_meta(self, order_id: str, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        ...


class HostPlatform(OrderMetaStore, Protocol):
    """Everything the tax core needs from the host platform."""

    def get_order_line_items(self, order_id: str) -> list[OrderItem]: ...

    def get_order_shipping_cost(self, order_id: str) -> Decimal: ...

    def get_order_destination(self, order_id: str) -> Address: ...

    def get_order_customer_id(self, order_id: str) -> str: ...

    def update_order_status(self, order_id: str, status: str) -> None: ...

    def add_order_note(self, order_id: str, note: str) -> None: ...

    def get_order_tax_lines(self, order_id: str) -> list[OrderTaxLine]: ...

    def delete_order_tax_line(self, order_id: str, tax_line_id: str) -> None: ...

    def get_configured_origin_addresses(self) -> list[Address]: ...

    def on_order_completed(self, handler: OrderHandler) -> None: ...

    def on_refund_created(self, handler: RefundHandler) -> None: ...

    def on_payment_complete(self, handler: OrderHandler) -> None: ...


class EventDispatcher:
    """In-process registry for order lifecycle handlers.

    Hosts that have no event system of their own can mix this in and call
    ``order_completed``, ``refund_created`` and ``payment_complete`` from
    their order code. Handler exceptions propagate to the caller so the host
    can roll back.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    def on_order_completed(self, handler: OrderHandler) -> None:
        self._handlers["order_completed"].append(handler)

    def on_refund_created(self, handler: RefundHandler) -> None:
        self._handlers["refund_created"].append(handler)

    def on_payment_complete(self, handler: OrderHandler) -> None:
        self._handlers["payment_complete"].append(handler)

    def _fire(self, event: str, *args: Any) -> None:
        handlers = self._handlers.get(event, [])
        logger.debug("Dispatching %s to %d handler(s)", event, len(handlers))
        for handler in handlers:
            handler(*args)

    def order_completed(self, order_id: str) -> None:
        self._fire("order_completed", order_id)

    def refund_created(self, order_id: str, items: list[RefundItem]) -> None:
        self._fire("refund_created", order_id, items)

    def payment_complete(self, order_id: str) -> None:
        self._fire("payment_complete", order_id)


def snapshot_order(
    platform: HostPlatform,
    order_id: str,
    destination: Address | None = None,
    local_pickup: bool = False,
) -> OrderSnapshot:
    """Read an order from the host into an ``OrderSnapshot``.

    ``destination`` overrides the order's own shipping address.
    """
    return OrderSnapshot(
        order_id=order_id,
        customer_id=platform.get_order_customer_id(order_id),
        destination=destination or platform.get_order_destination(order_id),
        items=platform.get_order_line_items(order_id),
        shipping_cost=platform.get_order_shipping_cost(order_id),
        local_pickup=local_pickup,
    )
