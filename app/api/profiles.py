from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..database_model.profile import Profile
from ..dependencies.auth import get_current_profile
from ..schemas.profile import ProfileResponse, PinRequest
from ..services.profile_service import ProfileService

router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(current_profile: Profile = Depends(get_current_profile)):
    return ProfileResponse.model_validate(current_profile)


@router.post("/me/pin")
async def set_pin(
    pin_data: PinRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    """Create or change the transaction PIN."""
    await ProfileService(db).set_pin(current_profile.id, pin_data.pin)
    return {"message": "Transaction PIN set successfully"}
