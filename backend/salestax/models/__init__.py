from salestax.models.order_meta import OrderMeta

__all__ = ["OrderMeta"]
