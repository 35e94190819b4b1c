from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..database_model.profile import Profile
from ..dependencies.auth import get_current_profile
from ..dependencies.gateway import get_service_gateway
from ..payment_model.abstract_gateway import AbstractServiceGateway
from ..schemas.profile import ReferralStatusResponse, ReferralCodeResponse
from ..services.referral_service import ReferralService

router = APIRouter(prefix="/referrals", tags=["Referrals"])


@router.get("/me", response_model=ReferralStatusResponse)
async def get_my_referrals(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
    gateway: AbstractServiceGateway = Depends(get_service_gateway)
):
    """Referral progress of the current profile. Earned rewards are issued first."""
    status = await ReferralService(db, gateway).get_referral_status(current_profile.id)
    return ReferralStatusResponse(**status)


@router.get("/verify/{code}", response_model=ReferralCodeResponse)
async def verify_referral_code(code: str, db: AsyncSession = Depends(get_db)):
    """Check a referral code before signup."""
    referrer = await ReferralService(db).verify_referral_code(code)
    return ReferralCodeResponse(valid=True, referral_code=referrer.referral_code, referrer_name=referrer.name)
