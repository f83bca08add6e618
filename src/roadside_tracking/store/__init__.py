from .base import OrderStore
from .memory import InMemoryOrderStore
from .models import Order, OrderKind, OrderStatus
from .normalization import normalize_order

__all__ = [
    "InMemoryOrderStore",
    "Order",
    "OrderKind",
    "OrderStatus",
    "OrderStore",
    "normalize_order",
]
