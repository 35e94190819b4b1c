from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ProfileResponse(BaseModel):
    id: int
    email: str
    name: str
    phone_number: Optional[str] = None
    wallet_balance: float
    referral_code: str
    referred_by: Optional[int] = None
    has_pin: bool
    is_admin: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PinRequest(BaseModel):
    pin: str

    @field_validator('pin')
    @classmethod
    def validate_pin(cls, v):
        if len(v) != 4 or not v.isdigit():
            raise ValueError('PIN must be exactly 4 digits')
        return v


class BeneficiaryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=11, max_length=14)
    network: str
    type: str = Field(..., description="airtime or data")


class BeneficiaryResponse(BaseModel):
    id: int
    name: str
    phone_number: str
    network: str
    type: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BeneficiarySuggestion(BaseModel):
    phone_number: str
    network: Optional[str] = None


class ReferralCodeResponse(BaseModel):
    valid: bool
    referral_code: str
    referrer_name: str


class ReferralStatusResponse(BaseModel):
    referral_code: str
    total_referrals: int
    qualifying_referrals: int
    qualifying_event: str
    reward_enabled: bool
    threshold: int
    reward_type: str
    reward_amount: float
    rewards_issued: int
    next_milestone_at: Optional[int] = None
    referrals_to_next_reward: Optional[int] = None
    rewards: List[Dict[str, Any]] = Field(default_factory=list)
    outcomes: List[Dict[str, Any]] = Field(default_factory=list)
