from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ..core.database import Base

class Beneficiary(Base):
    __tablename__ = "beneficiaries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    network = Column(String, nullable=False)  # 'MTN', 'AIRTEL', 'GLO', '9MOBILE'
    type = Column(String, nullable=False)  # 'airtime', 'data'
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    profile = relationship("Profile", back_populates="beneficiaries")

    def __repr__(self):
        return f"<Beneficiary(id={self.id}, phone={self.phone_number}, type={self.type})>"
