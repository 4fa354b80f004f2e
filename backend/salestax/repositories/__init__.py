from salestax.repositories.order_meta_repository import OrderMetaRepository

__all__ = ["OrderMetaRepository"]
