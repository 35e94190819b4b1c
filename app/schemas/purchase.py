from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .wallet import TransactionResponse


class PurchaseRequest(BaseModel):
    """Service purchase confirmed with the transaction PIN."""
    service: str = Field(..., description="airtime, data, electricity or waec")
    amount: float = Field(..., gt=0)
    details: Dict[str, Any] = Field(default_factory=dict)
    pin: str = Field(..., min_length=4, max_length=4)
    reference: Optional[str] = Field(None, max_length=100)
    save_beneficiary: bool = False
    beneficiary_name: Optional[str] = None


class PurchaseResponse(BaseModel):
    status: str  # success, failed, pending
    message: str
    reference: Optional[str] = None
    transaction: Optional[TransactionResponse] = None
    balance: Optional[float] = None
    beneficiary_id: Optional[int] = None
