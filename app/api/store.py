from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..database_model.profile import Profile
from ..dependencies.auth import get_current_profile
from ..schemas.store import ProductResponse, OrderCreate, OrderResponse
from ..services.store_service import StoreService

router = APIRouter(prefix="/store", tags=["Store"])


@router.get("/products", response_model=List[ProductResponse])
async def list_products(
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await StoreService(db).list_products(category)


@router.post("/orders", response_model=OrderResponse, status_code=201)
async def place_order(
    order_data: OrderCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    """Order a product, paid from the wallet or on delivery."""
    return await StoreService(db).place_order(
        user_id=current_profile.id,
        product_id=order_data.product_id,
        quantity=order_data.quantity,
        payment_method=order_data.payment_method,
        shipping_address=order_data.shipping_address
    )


@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    return await StoreService(db).list_orders(current_profile.id)
