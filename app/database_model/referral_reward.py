from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from ..core.database import Base

class ReferralReward(Base):
    __tablename__ = "referral_rewards"

    id = Column(Integer, primary_key=True, index=True)
    referrer_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    milestone = Column(Integer, nullable=False)  # 1st, 2nd, ... threshold crossing
    referral_count = Column(Integer, nullable=False)  # qualifying referrals when claimed
    reward_type = Column(String, nullable=False)  # 'data_bundle', 'airtime', 'wallet_credit'
    amount = Column(Float, nullable=False)
    status = Column(String, default="pending")  # 'pending', 'credited', 'failed'
    transaction_reference = Column(String, nullable=True)
    credited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('referrer_id', 'milestone', name='uq_referral_rewards_referrer_milestone'),
    )

    def __repr__(self):
        return f"<ReferralReward(id={self.id}, referrer_id={self.referrer_id}, milestone={self.milestone}, status={self.status})>"
