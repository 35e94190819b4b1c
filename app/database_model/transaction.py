from enum import Enum
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ..core.database import Base

class TransactionType(str, Enum):
    AIRTIME = "airtime"
    DATA = "data"
    ELECTRICITY = "electricity"
    WAEC = "waec"
    WALLET_FUNDING = "wallet_funding"
    PRODUCT_PURCHASE = "product_purchase"
    REFERRAL_REWARD = "referral_reward"

class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

# Types that take money out of the wallet
DEBIT_TYPES = frozenset({
    TransactionType.AIRTIME,
    TransactionType.DATA,
    TransactionType.ELECTRICITY,
    TransactionType.WAEC,
    TransactionType.PRODUCT_PURCHASE,
})

# Types purchased through the service gateway
GATEWAY_TYPES = frozenset({
    TransactionType.AIRTIME,
    TransactionType.DATA,
    TransactionType.ELECTRICITY,
    TransactionType.WAEC,
})

def is_debit(transaction_type: str) -> bool:
    return transaction_type in {t.value for t in DEBIT_TYPES}

class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    type = Column(String, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    status = Column(String, nullable=False, default=TransactionStatus.PENDING.value, index=True)
    reference = Column(String, unique=True, index=True, nullable=False)
    provider_reference = Column(String, nullable=True)  # reference returned by the provider
    details = Column(JSON, nullable=False, default=dict)
    failure_reason = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    profile = relationship("Profile", back_populates="transactions")

    __table_args__ = (
        Index('idx_transactions_user_type_status', 'user_id', 'type', 'status'),
    )

    def __repr__(self):
        return f"<Transaction(id={self.id}, ref={self.reference}, type={self.type}, status={self.status})>"
