import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..database_model.profile import Profile
from ..dependencies.auth import get_current_profile
from ..dependencies.gateway import get_service_gateway
from ..payment_model.abstract_gateway import AbstractServiceGateway
from ..schemas.purchase import PurchaseRequest, PurchaseResponse
from ..schemas.wallet import TransactionResponse
from ..services.beneficiary_service import BeneficiaryService, BENEFICIARY_TYPES
from ..services.config_service import ConfigService
from ..services.purchase_flow import PurchaseFlow, FlowResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])


@router.get("/status")
async def get_service_status(db: AsyncSession = Depends(get_db)):
    """Availability of every service, as set by the admins."""
    snapshot = await ConfigService(db).get_snapshot()
    return {
        "services": {name: status.value for name, status in snapshot.services.items()},
        "funding_charge": {
            "enabled": snapshot.funding_charge.enabled,
            "type": snapshot.funding_charge.charge_type,
            "value": snapshot.funding_charge.value,
            "display_text": snapshot.funding_charge.display_text,
        },
    }


@router.post("/purchase", response_model=PurchaseResponse)
async def purchase_service(
    purchase_data: PurchaseRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
    gateway: AbstractServiceGateway = Depends(get_service_gateway)
):
    """Buy airtime, data, electricity or WAEC, confirmed with the transaction PIN."""
    config = await ConfigService(db).get_snapshot()
    flow = PurchaseFlow(db, gateway=gateway, config=config)

    flow.start(
        current_profile,
        purchase_data.service,
        purchase_data.amount,
        purchase_data.details,
        reference=purchase_data.reference
    )
    result = await flow.authorize(purchase_data.pin)

    if result != FlowResult.SUCCESS:
        raise flow.error

    transaction = flow.transaction
    beneficiary_id = None
    if purchase_data.save_beneficiary and transaction.type in BENEFICIARY_TYPES:
        details = transaction.details or {}
        beneficiary = await BeneficiaryService(db).save_beneficiary(
            user_id=current_profile.id,
            name=purchase_data.beneficiary_name or details.get("phone"),
            phone_number=details.get("phone"),
            network=details.get("network"),
            beneficiary_type=transaction.type
        )
        beneficiary_id = beneficiary.id

    balance = await flow.wallet_service.get_balance(current_profile.id)

    return PurchaseResponse(
        status=result.value,
        message=f"{transaction.type.capitalize()} purchase successful",
        reference=transaction.reference,
        transaction=TransactionResponse.model_validate(transaction),
        balance=balance,
        beneficiary_id=beneficiary_id
    )
