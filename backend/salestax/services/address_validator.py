"""Address verification with per-session and per-order caching."""

import logging
from collections.abc import MutableMapping
from typing import Any

from salestax.core.exceptions import AddressError, TransportError
from salestax.schemas.address import Address
from salestax.services.platform import OrderMetaStore
from salestax.services.taxcloud.client import TaxCloudClient

logger = logging.getLogger(__name__)

VALIDATED_ADDRESSES_KEY = "validated_addresses"


class AddressValidator:
    """Normalizes US destination addresses through TaxCloud.

    Before checkout results are cached in ``session_cache`` (owned by the
    caller's session); once an order exists they are cached in the order's
    ``validated_addresses`` meta entry. Validation never fails: when TaxCloud
    cannot verify an address the original is used instead.
    """

    def __init__(
        self,
        client: TaxCloudClient,
        meta_store: OrderMetaStore | None = None,
        session_cache: MutableMapping[str, Any] | None = None,
        enabled: bool = True,
    ):
        self.client = client
        self.meta_store = meta_store
        self.session_cache: MutableMapping[str, Any] = (
            session_cache if session_cache is not None else {}
        )
        self.enabled = enabled

    def _order_store(self, order_id: str | None) -> OrderMetaStore | None:
        if order_id is None:
            return None
        return self.meta_store

    def _cached(self, key: str, order_id: str | None) -> Address | None:
        store = self._order_store(order_id)
        if store is not None and order_id is not None:
            stored = (store.get_order_meta(order_id, VALIDATED_ADDRESSES_KEY) or {}).get(key)
        else:
            stored = self.session_cache.get(key)

        if stored is None:
            return None
        return Address.model_validate(stored)

    def _store(self, key: str, address: Address, order_id: str | None) -> None:
        store = self._order_store(order_id)
        if store is not None and order_id is not None:
            cache = dict(store.get_order_meta(order_id, VALIDATED_ADDRESSES_KEY) or {})
            cache[key] = address.model_dump()
            store.set_order_meta(order_id, VALIDATED_ADDRESSES_KEY, cache)
        else:
            self.session_cache[key] = address.model_dump()

    def validate(self, address: Address, order_id: str | None = None) -> Address:
        if not self.enabled or not address.is_us:
            return address

        key = address.content_hash()
        cached = self._cached(key, order_id)
        if cached is not None:
            return cached

        try:
            verified = self.client.verify_address(address)
        except AddressError as exc:
            logger.warning("Address %s could not be verified: %s", address.formatted(), exc.message)
            # Remember the failure so the same address is not re-verified
            self._store(key, address, order_id)
            return address
        except TransportError as exc:
            logger.warning("Address verification unavailable: %s", exc.message)
            return address

        # TaxCloud does not echo the country
        result = verified.model_copy(
            update={
                "country": address.country,
                "line2": verified.line2 or address.line2,
            }
        )
        self._store(key, result, order_id)
        return result
