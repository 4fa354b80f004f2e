"""OrderMeta model: key/value tax data stored per host order."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint, func

from salestax.core.database import Base


class OrderMeta(Base):
    """One meta entry of a host order (``status``, ``cart_id``, ``tax_amounts``, ...)."""

    __tablename__ = "order_meta"
    __table_args__ = (UniqueConstraint("order_id", "meta_key", name="uq_order_meta_order_key"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(255), nullable=False, index=True)
    meta_key = Column(String(100), nullable=False)
    meta_value = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
