from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ..core.database import Base

class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    phone_number = Column(String, nullable=True)
    wallet_balance = Column(Float, default=0.0, nullable=False)
    referral_code = Column(String, unique=True, index=True, nullable=False)
    referred_by = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)
    pin_hash = Column(String, nullable=True)
    pin_salt = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    transactions = relationship("Transaction", back_populates="profile")
    beneficiaries = relationship("Beneficiary", back_populates="profile")

    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_profiles_wallet_balance_non_negative"),
    )

    @property
    def has_pin(self) -> bool:
        return self.pin_hash is not None

    def __repr__(self):
        return f"<Profile(id={self.id}, email={self.email}, balance={self.wallet_balance})>"
