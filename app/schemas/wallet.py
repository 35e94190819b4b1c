from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

PAYMENT_METHODS = ["card", "bank_transfer", "ussd", "bank_deposit"]


class BalanceResponse(BaseModel):
    user_id: int
    balance: float


class TransactionResponse(BaseModel):
    id: int
    type: str
    amount: float
    status: str
    reference: str
    provider_reference: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    total: int
    limit: int
    offset: int


class FundingRequest(BaseModel):
    amount: float = Field(..., gt=0)
    payment_method: str = "bank_transfer"
    provider_reference: str = Field(..., min_length=1, max_length=100)

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v):
        return round(v, 2)

    @field_validator('payment_method')
    @classmethod
    def validate_payment_method(cls, v):
        if v not in PAYMENT_METHODS:
            raise ValueError(f'Payment method must be one of: {", ".join(PAYMENT_METHODS)}')
        return v


class FundingResponse(BaseModel):
    reference: str
    amount: float
    payment_method: str
    status: str
    message: str
