from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..database_model.profile import Profile
from ..dependencies.auth import get_current_profile
from ..schemas.profile import BeneficiaryCreate, BeneficiaryResponse, BeneficiarySuggestion
from ..services.beneficiary_service import BeneficiaryService

router = APIRouter(prefix="/beneficiaries", tags=["Beneficiaries"])


@router.get("", response_model=List[BeneficiaryResponse])
async def list_beneficiaries(
    type: Optional[str] = Query(None, description="airtime or data"),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    return await BeneficiaryService(db).list_beneficiaries(current_profile.id, type)


@router.get("/suggestions", response_model=List[BeneficiarySuggestion])
async def suggest_beneficiaries(
    type: str = Query("airtime", description="airtime or data"),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    """Recent recipients of successful purchases."""
    return await BeneficiaryService(db).suggest_from_history(current_profile.id, type)


@router.post("", response_model=BeneficiaryResponse, status_code=201)
async def create_beneficiary(
    beneficiary_data: BeneficiaryCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    return await BeneficiaryService(db).save_beneficiary(
        user_id=current_profile.id,
        name=beneficiary_data.name,
        phone_number=beneficiary_data.phone_number,
        network=beneficiary_data.network,
        beneficiary_type=beneficiary_data.type
    )


@router.delete("/{beneficiary_id}", status_code=204)
async def delete_beneficiary(
    beneficiary_id: int,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    await BeneficiaryService(db).delete_beneficiary(current_profile.id, beneficiary_id)
    return Response(status_code=204)
