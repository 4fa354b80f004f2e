from typing import Any

from sqlalchemy.orm import Session

from salestax.models.order_meta import OrderMeta


class OrderMetaRepository:
    """SQL-backed order meta store used by the transaction ledger."""

    def __init__(self, db: Session):
        self.db = db

    def _get_entry(self, order_id: str, key: str) -> OrderMeta | None:
        return (
            self.db.query(OrderMeta)
            .filter(OrderMeta.order_id == order_id, OrderMeta.meta_key == key)
            .first()
        )

    def get_order_meta(self, order_id: str, key: str) -> Any:
        entry = self._get_entry(order_id, key)
        if not entry:
            return None
        return entry.meta_value

    def set_order_meta(self, order_id: str, key: str, value: Any) -> None:
        entry = self._get_entry(order_id, key)
        if entry:
            entry.meta_value = value  # type: ignore[assignment]
        else:
            self.db.add(OrderMeta(order_id=order_id, meta_key=key, meta_value=value))
        self.db.commit()

    def find_order_ids(self, key: str, value: Any) -> list[str]:
        """Return the IDs of orders whose ``key`` meta entry equals ``value``."""
        entries = self.db.query(OrderMeta).filter(OrderMeta.meta_key == key).all()
        return [str(entry.order_id) for entry in entries if entry.meta_value == value]
