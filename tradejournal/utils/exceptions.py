from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    AUTHENTICATION = "authentication"
    INFRASTRUCTURE = "infrastructure"
    CANCELLED = "cancelled"


class InvalidField(str, Enum):
    USER_ID = "invalid user ID"
    JOURNAL_ID = "invalid journal ID"
    JOURNAL_NAME = "invalid journal name"
    ASSET = "invalid currency pair asset"
    LTF = "invalid lower timeframe (LTF)"
    HTF = "invalid higher timeframe (HTF)"
    SESSION = "invalid trading session"
    TRADE_TYPE = "invalid trade type"
    DIRECTION = "invalid trade direction"
    ENTRY_TYPE = "invalid entry type"
    RESULT = "invalid trade result"
    REALIZED = "invalid realized P/L, must be a finite number"
    MAX_RR = "invalid max risk/reward, must be greater than 0"


class JournalError(Exception):
    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.category = category
        self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.category.value}] {self.message}"]
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        if self.__cause__ is not None:
            parts.append(f"cause: {self.__cause__!r}")
        return " | ".join(parts)

    @property
    def public_message(self) -> str:
        """Message that is safe to return to an API caller."""
        return self.message


class ValidationError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.VALIDATION, 400)


class InvalidFieldError(ValidationError):
    def __init__(self, field: InvalidField) -> None:
        self.field = field
        super().__init__(field.value)


class NotFoundError(JournalError):
    def __init__(self, message: str = "resource not found") -> None:
        super().__init__(message, ErrorCategory.NOT_FOUND, 404)


class AccessDeniedError(JournalError):
    """Resource exists but belongs to someone else.

    With ``conceal`` set the caller sees the same 404 a missing resource
    would produce, so ownership probes reveal nothing.
    """

    def __init__(self, message: str = "access denied", conceal: bool = True) -> None:
        self.conceal = conceal
        super().__init__(message, ErrorCategory.ACCESS_DENIED, 404 if conceal else 403)

    @property
    def public_message(self) -> str:
        return self.message if not self.conceal else "not found or access denied"


class AuthenticationError(JournalError):
    def __init__(self, message: str, status_code: int = 401) -> None:
        super().__init__(message, ErrorCategory.AUTHENTICATION, status_code)


class InvalidCredentialsError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("invalid email or password")


class InvalidTokenError(AuthenticationError):
    def __init__(self, message: str = "invalid token") -> None:
        super().__init__(message)


class DuplicateIdentityError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("user with this email or username already exists", 409)


class InfrastructureError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.INFRASTRUCTURE, 500)

    @property
    def public_message(self) -> str:
        return "internal server error"


class StorageError(InfrastructureError):
    pass


class CacheError(InfrastructureError):
    pass


class TokenIssuerError(InfrastructureError):
    pass


class DeadlineExceededError(JournalError):
    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} exceeded deadline of {timeout:g}s", ErrorCategory.CANCELLED, 504)

    @property
    def public_message(self) -> str:
        return "request timed out"
