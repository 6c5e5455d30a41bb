from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """Base exception for API errors"""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details,
                },
            },
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message


class AuthenticationError(BaseAPIException):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details,
        )


class AuthorizationError(BaseAPIException):
    """Authorization related errors"""

    def __init__(self, message: str = "Access forbidden", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details,
        )


class InvalidSignatureError(BaseAPIException):
    """Webhook signature mismatch"""

    def __init__(self, message: str = "Invalid signature", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_003",
            message=message,
            details=details,
        )


class ValidationError(BaseAPIException):
    """Validation errors"""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details,
        )


class NotFoundError(BaseAPIException):
    """Resource not found errors"""

    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details,
        )


class LockedError(BaseAPIException):
    """Token is locked"""

    def __init__(self, message: str = "Token locked", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="TOKEN_LOCKED",
            message=message,
            details=details,
        )


class NotActivatedError(BaseAPIException):
    """Token has not been activated yet"""

    def __init__(self, message: str = "Activate the token first", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="TOKEN_NOT_ACTIVATED",
            message=message,
            details=details,
        )


class UnsupportedModeError(BaseAPIException):
    """Funding mode not supported for this token type"""

    def __init__(self, message: str = "Unsupported refill mode", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="UNSUPPORTED_MODE",
            message=message,
            details=details,
        )


class AmountTooSmallError(BaseAPIException):
    """Amount does not cover the fee or floors to zero credits"""

    def __init__(self, message: str = "Amount too small", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="AMOUNT_TOO_SMALL",
            message=message,
            details=details,
        )


class InsufficientBalanceError(BaseAPIException):
    """Insufficient balance errors"""

    def __init__(
        self,
        message: str = "Insufficient balance",
        balance: Optional[Decimal] = None,
        required: Optional[Decimal] = None,
        details: Optional[Dict] = None,
    ):
        self.balance = balance
        self.required = required
        details = dict(details or {})
        if balance is not None:
            details["balance"] = str(balance)
        if required is not None:
            details["required"] = str(required)
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BALANCE_001",
            message=message,
            details=details,
        )


class ConflictError(BaseAPIException):
    """Resource conflict errors"""

    def __init__(self, message: str = "Resource conflict", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT_001",
            message=message,
            details=details,
        )


class ConcurrentUpdateError(ConflictError):
    """Row changed between read and write (compare-and-swap failed)"""

    def __init__(
        self,
        message: str = "Token was modified concurrently, retry the request",
        details: Optional[Dict] = None,
    ):
        super().__init__(message=message, details=details)
        self.error_code = "CONFLICT_002"
        self.detail["error"]["code"] = self.error_code


class PersistenceError(BaseAPIException):
    """Storage write failure"""

    def __init__(self, message: str = "Failed to persist changes", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="PERSISTENCE_001",
            message=message,
            details=details,
        )


class PaymentGatewayError(BaseAPIException):
    """Upstream payment gateway failure"""

    def __init__(self, message: str = "Failed to create payment", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="GATEWAY_001",
            message=message,
            details=details,
        )


class InternalServerError(BaseAPIException):
    """Internal server errors"""

    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details,
        )


class ServiceException(Exception):
    """Base exception for service layer errors"""

    pass


class MirrorSyncError(ServiceException):
    """Hub mirror write failed. Never escapes a service; reported as status only."""

    pass


class HubUnavailableError(BaseAPIException):
    """Hub API could not be read"""

    def __init__(self, message: str = "Failed to fetch data from hub", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="HUB_001",
            message=message,
            details=details,
        )
