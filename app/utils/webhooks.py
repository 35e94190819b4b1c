import hmac
import hashlib
import json
from typing import Dict, Any, Optional, Union
from fastapi import Request
from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.errors import WebhookValidationError


class PaymentWebhookPayload(BaseModel):
    """Funding notification sent by the payment provider."""
    event: str  # 'charge.success', 'charge.failed'
    reference: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    user_id: int
    payment_method: str = "bank_transfer"
    reason: Optional[str] = None


class EventTypes:
    """Payment provider event types."""
    CHARGE_SUCCESS = "charge.success"
    CHARGE_FAILED = "charge.failed"


class WebhookSignature:
    """Utility for signing and verifying webhook payloads."""

    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    def generate_signature(self, payload: Union[str, bytes, Dict[str, Any]]) -> str:
        """
        Generate HMAC-SHA256 signature for a webhook payload.

        Args:
            payload: Webhook payload (string, bytes, or dict)

        Returns:
            str: Hex digest
        """
        if isinstance(payload, dict):
            payload = json.dumps(payload, separators=(',', ':')).encode()
        elif isinstance(payload, str):
            payload = payload.encode()

        return hmac.new(
            key=self.secret_key.encode(),
            msg=payload,
            digestmod=hashlib.sha256
        ).hexdigest()

    def verify_signature(self, payload: Union[str, bytes, Dict[str, Any]], signature: str) -> bool:
        expected_signature = self.generate_signature(payload)
        return hmac.compare_digest(expected_signature, signature)


async def verify_webhook_signature(request: Request) -> Dict[str, Any]:
    """
    Verify webhook signature from request.

    Args:
        request: FastAPI request

    Returns:
        Dict[str, Any]: Verified webhook payload

    Raises:
        WebhookValidationError: If signature is missing or invalid
    """
    signature = request.headers.get(settings.webhook_signature_header)
    if not signature:
        raise WebhookValidationError("Missing webhook signature")

    body = await request.body()

    webhook_signature = WebhookSignature(settings.webhook_secret_key)
    if not webhook_signature.verify_signature(body, signature):
        raise WebhookValidationError("Invalid webhook signature")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        raise WebhookValidationError("Invalid JSON payload")
    if not isinstance(payload, dict):
        raise WebhookValidationError("Invalid JSON payload")
    return payload
