"""Per-order TaxCloud transaction state, persisted as order meta."""

import copy
import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from salestax.core.exceptions import InvalidStateError
from salestax.schemas.address import Address
from salestax.schemas.transaction import PackageRecord, TaxStatus, TaxTransaction
from salestax.services.platform import OrderMetaStore

logger = logging.getLogger(__name__)

META_DEFAULTS: dict[str, Any] = {
    "status": TaxStatus.NONE.value,
    "cart_id": None,
    "tax_amounts": {},
    "provider_order_id": None,
    "captured_at": None,
    "exempt_cert": None,
    "destination_address": None,
    "packages": [],
    "returned_tax_amounts": {},
    "returned_at": None,
    "error_reason": None,
    "validated_addresses": {},
}

EDITABLE_STATUSES = frozenset({TaxStatus.NONE, TaxStatus.PENDING, TaxStatus.ERRORED})


def _amounts_to_meta(amounts: dict[str, Decimal]) -> dict[str, str]:
    return {item_id: str(amount) for item_id, amount in amounts.items()}


class TransactionLedger:
    """State machine for an order's tax transaction.

    none -> pending -> captured -> refunded, with errored reachable from any
    state before capture. Every transition checks the current status first;
    a rejected transition raises ``InvalidStateError`` and writes nothing.
    """

    def __init__(self, store: OrderMetaStore):
        self.store = store

    def _read(self, order_id: str, key: str) -> Any:
        value = self.store.get_order_meta(order_id, key)
        if value is None:
            return copy.deepcopy(META_DEFAULTS[key])
        return value

    def _write(self, order_id: str, values: dict[str, Any]) -> None:
        for key, value in values.items():
            self.store.set_order_meta(order_id, key, value)

    def _require(
        self, order_id: str, allowed: set[TaxStatus] | frozenset[TaxStatus], target: TaxStatus
    ) -> TaxStatus:
        current = self.status(order_id)
        if current not in allowed:
            logger.error(
                "Invalid tax transition for order %s: %s -> %s",
                order_id,
                current.value,
                target.value,
            )
            raise InvalidStateError(
                f"Order {order_id} cannot move from {current.value} to {target.value}",
                current_status=current.value,
                target_status=target.value,
            )
        return current

    def status(self, order_id: str) -> TaxStatus:
        return TaxStatus(self._read(order_id, "status"))

    def get(self, order_id: str) -> TaxTransaction:
        destination = self._read(order_id, "destination_address")
        return TaxTransaction(
            order_id=order_id,
            status=self.status(order_id),
            cart_id=self._read(order_id, "cart_id"),
            line_item_tax_amounts=self._read(order_id, "tax_amounts"),
            provider_order_id=self._read(order_id, "provider_order_id"),
            captured_at=self._read(order_id, "captured_at"),
            certificate_id=self._read(order_id, "exempt_cert"),
            destination_address=Address.model_validate(destination) if destination else None,
            packages=[PackageRecord.model_validate(p) for p in self._read(order_id, "packages")],
            returned_tax_amounts=self._read(order_id, "returned_tax_amounts"),
            returned_at=self._read(order_id, "returned_at"),
            error_reason=self._read(order_id, "error_reason"),
        )

    def record_quote(
        self,
        order_id: str,
        cart_id: str,
        destination: Address,
        tax_amounts: dict[str, Decimal],
        packages: list[PackageRecord] | None = None,
        certificate_id: str | None = None,
    ) -> TaxTransaction:
        """Store a successful lookup, replacing any earlier quote."""
        self._require(order_id, EDITABLE_STATUSES, TaxStatus.PENDING)

        if packages is None:
            packages = [
                PackageRecord(
                    cart_id=cart_id,
                    provider_order_id=order_id,
                    item_ids=list(tax_amounts),
                )
            ]

        values: dict[str, Any] = {
            "cart_id": cart_id,
            "tax_amounts": _amounts_to_meta(tax_amounts),
            "destination_address": destination.model_dump(),
            "packages": [p.model_dump(mode="json") for p in packages],
            "provider_order_id": None,
            "error_reason": None,
            "status": TaxStatus.PENDING.value,
        }
        if certificate_id is not None:
            values["exempt_cert"] = certificate_id

        self._write(order_id, values)
        logger.info("Recorded tax quote for order %s (cart %s)", order_id, cart_id)
        return self.get(order_id)

    def record_capture(self, order_id: str, provider_order_id: str) -> TaxTransaction:
        self._require(order_id, {TaxStatus.PENDING}, TaxStatus.CAPTURED)
        self._write(
            order_id,
            {
                "provider_order_id": provider_order_id,
                "captured_at": datetime.now(UTC).isoformat(),
                "status": TaxStatus.CAPTURED.value,
            },
        )
        logger.info("Order %s captured as TaxCloud order %s", order_id, provider_order_id)
        return self.get(order_id)

    def record_return(
        self, order_id: str, returned_tax_amounts: dict[str, Decimal]
    ) -> TaxTransaction:
        """Mark the order returned. The original tax amounts are kept."""
        self._require(order_id, {TaxStatus.CAPTURED}, TaxStatus.REFUNDED)
        self._write(
            order_id,
            {
                "returned_tax_amounts": _amounts_to_meta(returned_tax_amounts),
                "returned_at": datetime.now(UTC).isoformat(),
                "status": TaxStatus.REFUNDED.value,
            },
        )
        logger.info("Recorded return for order %s", order_id)
        return self.get(order_id)

    def record_error(self, order_id: str, reason: str) -> TaxTransaction:
        self._require(order_id, EDITABLE_STATUSES, TaxStatus.ERRORED)
        self._write(
            order_id,
            {"error_reason": reason, "status": TaxStatus.ERRORED.value},
        )
        logger.warning("Tax transaction for order %s errored: %s", order_id, reason)
        return self.get(order_id)

    def clear_quote(self, order_id: str) -> TaxTransaction:
        """Drop a pending or errored quote that no longer applies to the order.

        The exemption certificate and validated addresses are kept.
        """
        self._require(order_id, EDITABLE_STATUSES, TaxStatus.NONE)
        self._write(
            order_id,
            {
                key: copy.deepcopy(META_DEFAULTS[key])
                for key in (
                    "cart_id",
                    "tax_amounts",
                    "destination_address",
                    "packages",
                    "provider_order_id",
                    "error_reason",
                    "status",
                )
            },
        )
        logger.info("Cleared tax quote for order %s", order_id)
        return self.get(order_id)

    def reset(self, order_id: str) -> None:
        """Write every meta key back to its default (used for renewal orders)."""
        self._write(order_id, copy.deepcopy(META_DEFAULTS))

    def set_certificate(self, order_id: str, certificate_id: str | None) -> TaxTransaction:
        """Attach an exemption certificate, or detach it with ``None``."""
        current = self.status(order_id)
        if current not in EDITABLE_STATUSES:
            logger.error(
                "Cannot change exemption certificate of order %s in status %s",
                order_id,
                current.value,
            )
            raise InvalidStateError(
                f"Exemption certificate of order {order_id} cannot change once {current.value}",
                current_status=current.value,
            )
        self.store.set_order_meta(order_id, "exempt_cert", certificate_id)
        return self.get(order_id)

    def detach_certificate(self, certificate_id: str, order_ids: list[str]) -> list[str]:
        """Clear a deleted certificate from the given orders that can still change.

        Captured and returned orders keep the reference they were reported with.

        Returns:
            IDs of the orders that were updated.
        """
        detached = []
        for order_id in order_ids:
            if self._read(order_id, "exempt_cert") != certificate_id:
                continue
            if self.status(order_id) not in EDITABLE_STATUSES:
                continue
            self.store.set_order_meta(order_id, "exempt_cert", None)
            detached.append(order_id)
        if detached:
            logger.info(
                "Detached exemption certificate %s from %d order(s)", certificate_id, len(detached)
            )
        return detached
