from .base import Base
from .user import User, UserRole
from .product import Product
from .payment import Payment
from .token import Transaction, Token, RefillTransaction

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Product",
    "Payment",
    "Transaction",
    "Token",
    "RefillTransaction",
]
