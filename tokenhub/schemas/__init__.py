from .user import User
from .product import Product
from .payment import PaymentRecord
from .token import Token, IssuanceBatch, AdminAdjustment, RefillRecord
from .account import BalanceResponse
