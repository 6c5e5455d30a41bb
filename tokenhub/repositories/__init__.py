# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .product_repository import ProductRepository
from .payment_repository import PaymentRepository
from .transaction_repository import TransactionRepository
from .token_repository import TokenRepository
from .refill_repository import RefillRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "ProductRepository",
    "PaymentRepository",
    "TransactionRepository",
    "TokenRepository",
    "RefillRepository",
]
