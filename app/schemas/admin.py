from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SettingResponse(BaseModel):
    key: str
    value: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SettingUpdate(BaseModel):
    value: str
    description: Optional[str] = None


class ServiceStatusUpdate(BaseModel):
    status: str  # active, disabled, coming_soon


class TransactionStatusUpdate(BaseModel):
    status: str  # success or failed
    reason: Optional[str] = None
