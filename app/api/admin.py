from typing import List, Dict, Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.database_model.profile import Profile
from app.dependencies.auth import get_current_admin
from app.schemas.admin import SettingResponse, SettingUpdate, ServiceStatusUpdate, TransactionStatusUpdate
from app.schemas.wallet import TransactionResponse
from app.services.admin_service import AdminService
from app.services.config_service import ConfigService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/settings", response_model=List[SettingResponse])
async def list_settings(
    current_admin: Profile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """List all admin settings, creating missing defaults first."""
    config_service = ConfigService(db)
    await config_service.ensure_defaults()
    return await config_service.get_all_settings()


@router.get("/settings/{key}", response_model=SettingResponse)
async def get_setting(
    key: str,
    current_admin: Profile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await ConfigService(db).get_setting(key)


@router.put("/settings/{key}", response_model=SettingResponse)
async def update_setting(
    key: str,
    setting_data: SettingUpdate,
    current_admin: Profile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await ConfigService(db).update_setting(
        key, setting_data.value, setting_data.description, admin_id=current_admin.id
    )


@router.put("/services/{service}/status", response_model=SettingResponse)
async def update_service_status(
    service: str,
    status_data: ServiceStatusUpdate,
    current_admin: Profile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Switch a service between active, disabled and coming_soon."""
    return await ConfigService(db).update_service_status(
        service, status_data.status, admin_id=current_admin.id
    )


@router.patch("/transactions/{transaction_id}/status", response_model=TransactionResponse)
async def update_transaction_status(
    transaction_id: int,
    status_data: TransactionStatusUpdate,
    current_admin: Profile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Resolve a pending transaction by hand."""
    transaction = await AdminService(db).update_transaction_status(
        current_admin.id, transaction_id, status_data.status, status_data.reason
    )
    return TransactionResponse.model_validate(transaction)


@router.get("/transactions/summary", response_model=Dict[str, Any])
async def get_transaction_summary(
    current_admin: Profile = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await AdminService(db).transaction_summary()
