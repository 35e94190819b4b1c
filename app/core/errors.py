from fastapi import HTTPException, status
from typing import Any, Dict, Optional

class HaamanException(HTTPException):
    """Base exception for the Haaman Network API."""
    error_code = "ERROR"

    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        headers: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return str(self.detail)

class AuthenticationError(HaamanException):
    """Authentication failed."""
    error_code = "AUTHENTICATION_FAILED"

    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )

class AuthorizationError(HaamanException):
    """Authorization failed."""
    error_code = "NOT_AUTHORIZED"

    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

class NotFoundError(HaamanException):
    """Resource not found."""
    error_code = "NOT_FOUND"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail
        )

class ValidationError(HaamanException):
    """Validation error."""
    error_code = "VALIDATION_FAILED"

    def __init__(self, detail: str = "Validation failed"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail
        )

class InsufficientFundsError(HaamanException):
    """Insufficient wallet balance."""
    error_code = "INSUFFICIENT_FUNDS"

    def __init__(self, detail: str = "Insufficient wallet balance. Please fund your wallet and try again."):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )

class AdapterFailureError(HaamanException):
    """The service provider definitely did not deliver the purchase."""
    error_code = "PROVIDER_FAILURE"

    MESSAGES = {
        "network": "Unable to connect to payment service. Please check your internet connection and try again.",
        "upstream-rejected": "The service provider declined this transaction. Please check the details and try again.",
        "upstream-unavailable": "Payment service temporarily unavailable. Please try again later or contact support.",
    }

    STATUS_CODES = {
        "network": status.HTTP_502_BAD_GATEWAY,
        "upstream-rejected": status.HTTP_400_BAD_REQUEST,
        "upstream-unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    def __init__(self, kind: str, detail: Optional[str] = None, reference: Optional[str] = None):
        self.kind = kind
        self.reference = reference
        super().__init__(
            status_code=self.STATUS_CODES.get(kind, status.HTTP_502_BAD_GATEWAY),
            detail=detail or self.MESSAGES.get(kind, "Failed to complete transaction. Please try again.")
        )

class AdapterTimeoutError(HaamanException):
    """The provider outcome is unknown; the transaction stays pending."""
    error_code = "PROVIDER_TIMEOUT"

    def __init__(self, reference: Optional[str] = None, detail: Optional[str] = None):
        self.reference = reference
        super().__init__(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=detail or (
                f"Transaction {reference} is being processed. "
                "Please do not retry; your balance will only be charged if it succeeds."
            )
        )

class DuplicateFundingReferenceError(HaamanException):
    """A funding reference that was already credited."""
    error_code = "DUPLICATE_FUNDING_REFERENCE"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Funding reference already processed: {reference}"
        )

class InvalidReferralCodeError(HaamanException):
    """Referral code does not belong to any profile."""
    error_code = "INVALID_REFERRAL_CODE"

    def __init__(self, detail: str = "Invalid referral code. Please check and try again."):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )

class ServiceUnavailableError(HaamanException):
    """Service switched off by an administrator."""
    error_code = "SERVICE_UNAVAILABLE"

    def __init__(self, detail: str = "This service is currently unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail
        )

class PinNotSetError(HaamanException):
    """Transaction PIN has not been created yet."""
    error_code = "PIN_NOT_SET"

    def __init__(self, detail: str = "Please set your transaction PIN first"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )

class InvalidPinError(HaamanException):
    """Transaction PIN did not match."""
    error_code = "INVALID_PIN"

    def __init__(self, detail: str = "Invalid transaction PIN"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

class WebhookValidationError(HaamanException):
    """Webhook signature verification failed."""
    error_code = "INVALID_WEBHOOK_SIGNATURE"

    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail
        )
