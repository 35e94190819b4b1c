from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    category: Optional[str] = None
    in_stock: bool

    class Config:
        from_attributes = True


class OrderCreate(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1, le=100)
    payment_method: str = "wallet"
    shipping_address: Optional[str] = Field(None, max_length=500)


class OrderResponse(BaseModel):
    id: int
    product_id: int
    quantity: int
    total_amount: float
    payment_method: str
    status: str
    shipping_address: Optional[str] = None
    transaction_reference: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
