import logging
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.errors import ValidationError, DuplicateFundingReferenceError
from ..services.wallet_service import WalletService
from ..utils.webhooks import PaymentWebhookPayload, EventTypes, verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/payments")
async def payment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Payment provider notification (HMAC-SHA256 signed).

    A reference that was already credited is acknowledged as a duplicate so the
    provider stops redelivering it.
    """
    raw_payload = await verify_webhook_signature(request)
    try:
        payload = PaymentWebhookPayload(**raw_payload)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid webhook payload: {e.errors()[0]['msg']}")

    wallet_service = WalletService(db)

    if payload.event == EventTypes.CHARGE_SUCCESS:
        try:
            transaction = await wallet_service.fund_wallet(
                user_id=payload.user_id,
                amount=payload.amount,
                provider_reference=payload.reference,
                payment_method=payload.payment_method
            )
        except DuplicateFundingReferenceError:
            logger.info(f"Webhook for {payload.reference} already processed")
            return {"status": "duplicate", "reference": payload.reference}

        return {
            "status": "credited",
            "reference": transaction.reference,
            "amount": transaction.amount,
        }

    if payload.event == EventTypes.CHARGE_FAILED:
        transaction = await wallet_service.fail_funding(
            payload.reference, payload.reason or "Payment failed"
        )
        return {"status": transaction.status, "reference": transaction.reference}

    logger.info(f"Ignoring webhook event {payload.event} for {payload.reference}")
    return {"status": "ignored", "reference": payload.reference}
