import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, exists
from sqlalchemy.exc import IntegrityError

from ..database_model.profile import Profile
from ..database_model.referral_reward import ReferralReward
from ..database_model.transaction import Transaction, TransactionType, TransactionStatus
from ..payment_model.abstract_gateway import AbstractServiceGateway, GatewayRequest
from ..schemas.service_config import ServiceConfigSnapshot, ReferralRewardRule
from ..schemas.transaction_details import ReferralRewardDetails
from ..services.config_service import ConfigService
from ..services.wallet_service import WalletService
from ..utils.references import generate_reference
from ..core.errors import InvalidReferralCodeError

logger = logging.getLogger(__name__)

PENDING = TransactionStatus.PENDING.value
SUCCESS = TransactionStatus.SUCCESS.value
FAILED = TransactionStatus.FAILED.value

# Nigerian number prefixes, used to route gateway rewards to the referrer's network
NETWORK_PREFIXES = {
    "MTN": ("0803", "0806", "0703", "0706", "0813", "0816", "0810", "0814", "0903", "0906", "0913", "0916"),
    "AIRTEL": ("0802", "0808", "0708", "0812", "0701", "0902", "0901", "0904", "0907", "0912"),
    "GLO": ("0805", "0807", "0705", "0815", "0811", "0905", "0915"),
    "9MOBILE": ("0809", "0818", "0817", "0909", "0908"),
}


def detect_network(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    digits = phone.strip().replace(" ", "")
    if digits.startswith("+234"):
        digits = "0" + digits[4:]
    elif digits.startswith("234"):
        digits = "0" + digits[3:]
    for network, prefixes in NETWORK_PREFIXES.items():
        if digits.startswith(prefixes):
            return network
    return None


class RewardStatus(str, Enum):
    CREDITED = "credited"
    PENDING = "pending"
    FAILED = "failed"
    ALREADY_ISSUED = "already_issued"


class RewardOutcome(BaseModel):
    """What one evaluation did for one milestone."""
    milestone: int
    status: RewardStatus
    reward_type: Optional[str] = None
    amount: Optional[float] = None
    transaction_reference: Optional[str] = None
    message: str = ""

    @classmethod
    def already_issued(cls, milestone: int) -> "RewardOutcome":
        return cls(milestone=milestone, status=RewardStatus.ALREADY_ISSUED, message="Reward already issued")


class ReferralService:
    """Service for referral codes and milestone rewards."""

    def __init__(self, db: AsyncSession, gateway: Optional[AbstractServiceGateway] = None):
        self.db = db
        self.wallet_service = WalletService(db, gateway)

    async def verify_referral_code(self, code: str) -> Profile:
        """Get the profile owning a referral code."""
        if not code or not code.strip():
            raise InvalidReferralCodeError()
        result = await self.db.execute(
            select(Profile).where(Profile.referral_code == code.strip().upper())
        )
        profile = result.scalar_one_or_none()
        if not profile:
            raise InvalidReferralCodeError()
        return profile

    async def count_referrals(self, referrer_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Profile.id)).where(Profile.referred_by == referrer_id)
        )
        return result.scalar_one()

    async def count_qualifying_referrals(self, referrer_id: int, event: str = "first_funding") -> int:
        """Count referred profiles that reached the qualifying event.

        ``signup`` counts every referred profile; ``first_funding`` only those
        with at least one successful wallet funding.
        """
        if event == "signup":
            return await self.count_referrals(referrer_id)

        funded = exists().where(
            Transaction.user_id == Profile.id,
            Transaction.type == TransactionType.WALLET_FUNDING.value,
            Transaction.status == SUCCESS
        )
        result = await self.db.execute(
            select(func.count(Profile.id)).where(Profile.referred_by == referrer_id, funded)
        )
        return result.scalar_one()

    async def get_rewards(self, referrer_id: int) -> List[ReferralReward]:
        result = await self.db.execute(
            select(ReferralReward)
            .where(ReferralReward.referrer_id == referrer_id)
            .order_by(ReferralReward.milestone)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def evaluate_rewards(
        self,
        referrer_id: int,
        config: Optional[ServiceConfigSnapshot] = None
    ) -> List[RewardOutcome]:
        """Issue every reward milestone the referrer has earned and not yet received.

        Safe to run any number of times: each (referrer, milestone) pair is
        issued at most once.

        Args:
            referrer_id: Profile whose referrals are counted
            config: Admin settings snapshot, read when omitted

        Returns:
            List[RewardOutcome]: One entry per earned milestone
        """
        if config is None:
            config = await ConfigService(self.db).get_snapshot()
        rule = config.referral_reward

        if not rule.enabled or rule.count <= 0:
            return []

        qualifying = await self.count_qualifying_referrals(referrer_id, rule.qualifying_event)
        earned = qualifying // rule.count
        if earned == 0:
            return []

        # Plain copies; a rollback on a lost claim expires ORM instances
        markers = {
            reward.milestone: {
                "id": reward.id,
                "status": reward.status,
                "reward_type": reward.reward_type,
                "amount": reward.amount,
            }
            for reward in await self.get_rewards(referrer_id)
        }
        outcomes = []
        for milestone in range(1, earned + 1):
            marker = markers.get(milestone)
            if marker is not None and marker["status"] != RewardStatus.FAILED.value:
                outcomes.append(RewardOutcome.already_issued(milestone))
                continue
            outcomes.append(await self._issue(referrer_id, milestone, qualifying, rule, marker))
        return outcomes

    async def _claim(
        self,
        referrer_id: int,
        milestone: int,
        qualifying: int,
        rule: ReferralRewardRule,
        marker: Optional[Dict[str, Any]],
        status: str,
        **values
    ) -> bool:
        """Take ownership of a milestone by inserting its marker or re-claiming a failed one.

        Nothing is committed here. False when another evaluation owns it.
        """
        if marker is None:
            self.db.add(ReferralReward(
                referrer_id=referrer_id,
                milestone=milestone,
                referral_count=qualifying,
                reward_type=rule.reward_type,
                amount=rule.reward_amount,
                status=status,
                **values
            ))
            try:
                await self.db.flush()
            except IntegrityError:
                await self.db.rollback()
                return False
            return True

        result = await self.db.execute(
            update(ReferralReward)
            .where(ReferralReward.id == marker["id"], ReferralReward.status == RewardStatus.FAILED.value)
            .values(status=status, referral_count=qualifying, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _issue(
        self,
        referrer_id: int,
        milestone: int,
        qualifying: int,
        rule: ReferralRewardRule,
        marker: Optional[Dict[str, Any]]
    ) -> RewardOutcome:
        # A re-claimed marker keeps the reward it was first earned with
        reward_type = marker["reward_type"] if marker is not None else rule.reward_type
        amount = marker["amount"] if marker is not None else rule.reward_amount
        reference = generate_reference("RWD")
        details = ReferralRewardDetails(
            reward_type=reward_type,
            milestone=milestone,
            referral_count=qualifying,
            data_size=rule.data_size if reward_type == "data_bundle" else None,
        )

        if reward_type == "wallet_credit":
            return await self._issue_wallet_credit(
                referrer_id, milestone, qualifying, rule, marker, reference, amount, details
            )

        profile = await self.wallet_service.get_profile(referrer_id)
        details.phone = profile.phone_number

        if not await self._claim(
            referrer_id, milestone, qualifying, rule, marker, RewardStatus.PENDING.value,
            transaction_reference=reference
        ):
            return RewardOutcome.already_issued(milestone)

        self.db.add(Transaction(
            user_id=referrer_id,
            type=TransactionType.REFERRAL_REWARD.value,
            amount=amount,
            status=PENDING,
            reference=reference,
            details=details.model_dump(),
        ))
        await self.db.commit()

        if not profile.phone_number:
            return await self._resolve_failed(
                referrer_id, milestone, reference, reward_type, amount,
                "Referrer has no phone number on file"
            )

        network = detect_network(profile.phone_number)
        if not network:
            return await self._resolve_failed(
                referrer_id, milestone, reference, reward_type, amount,
                f"Could not detect the network for phone number {profile.phone_number}"
            )

        request_details: Dict[str, Any] = {
            "phone": profile.phone_number,
            "network": network,
        }
        if reward_type == "data_bundle":
            request_details["plan"] = rule.data_size

        logger.info(f"Issuing {reward_type} reward {reference} for milestone {milestone} to user {referrer_id}")
        result = await self.wallet_service.submit_to_gateway(GatewayRequest(
            transaction_type=reward_type,
            reference=reference,
            amount=amount,
            details=request_details,
        ))

        if result.success:
            await self.db.execute(
                update(Transaction)
                .where(Transaction.reference == reference, Transaction.status == PENDING)
                .values(status=SUCCESS, provider_reference=result.reference)
                .execution_options(synchronize_session=False)
            )
            await self._set_marker(referrer_id, milestone, RewardStatus.CREDITED.value)
            await self.db.commit()
            logger.info(f"Referral reward {reference} delivered to user {referrer_id}")
            return RewardOutcome(
                milestone=milestone, status=RewardStatus.CREDITED, reward_type=reward_type,
                amount=amount, transaction_reference=reference, message=result.message
            )

        if result.is_unknown:
            logger.warning(f"Referral reward {reference} outcome unknown, left pending")
            return RewardOutcome(
                milestone=milestone, status=RewardStatus.PENDING, reward_type=reward_type,
                amount=amount, transaction_reference=reference, message=result.message
            )

        return await self._resolve_failed(referrer_id, milestone, reference, reward_type, amount, result.message)

    async def _issue_wallet_credit(
        self,
        referrer_id: int,
        milestone: int,
        qualifying: int,
        rule: ReferralRewardRule,
        marker: Optional[Dict[str, Any]],
        reference: str,
        amount: float,
        details: ReferralRewardDetails
    ) -> RewardOutcome:
        """Marker, ledger row and credit in one DB transaction."""
        if not await self._claim(
            referrer_id, milestone, qualifying, rule, marker, RewardStatus.CREDITED.value,
            transaction_reference=reference, credited_at=datetime.now(timezone.utc)
        ):
            return RewardOutcome.already_issued(milestone)

        self.db.add(Transaction(
            user_id=referrer_id,
            type=TransactionType.REFERRAL_REWARD.value,
            amount=amount,
            status=SUCCESS,
            reference=reference,
            details=details.model_dump(),
        ))
        await self.wallet_service.credit_wallet(referrer_id, amount)
        await self.db.commit()

        logger.info(f"Referral reward {reference}: credited {amount} to user {referrer_id} for milestone {milestone}")
        return RewardOutcome(
            milestone=milestone, status=RewardStatus.CREDITED, reward_type="wallet_credit",
            amount=amount, transaction_reference=reference, message="Wallet credited"
        )

    async def _set_marker(self, referrer_id: int, milestone: int, status: str) -> None:
        values = {"status": status}
        if status == RewardStatus.CREDITED.value:
            values["credited_at"] = datetime.now(timezone.utc)
        await self.db.execute(
            update(ReferralReward)
            .where(
                ReferralReward.referrer_id == referrer_id,
                ReferralReward.milestone == milestone,
                ReferralReward.status == RewardStatus.PENDING.value
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def _resolve_failed(
        self,
        referrer_id: int,
        milestone: int,
        reference: str,
        reward_type: str,
        amount: float,
        reason: str
    ) -> RewardOutcome:
        """Fail the reward so the next evaluation retries it."""
        await self.db.execute(
            update(Transaction)
            .where(Transaction.reference == reference, Transaction.status == PENDING)
            .values(status=FAILED, failure_reason=reason)
            .execution_options(synchronize_session=False)
        )
        await self._set_marker(referrer_id, milestone, RewardStatus.FAILED.value)
        await self.db.commit()

        logger.error(f"Referral reward {reference} for user {referrer_id} failed: {reason}")
        return RewardOutcome(
            milestone=milestone, status=RewardStatus.FAILED, reward_type=reward_type,
            amount=amount, transaction_reference=reference, message=reason
        )

    async def get_referral_status(
        self,
        referrer_id: int,
        config: Optional[ServiceConfigSnapshot] = None
    ) -> Dict[str, Any]:
        """Referral summary for a profile. Pending rewards are evaluated first."""
        if config is None:
            config = await ConfigService(self.db).get_snapshot()
        rule = config.referral_reward

        profile = await self.wallet_service.get_profile(referrer_id)
        referral_code = profile.referral_code
        outcomes = await self.evaluate_rewards(referrer_id, config)

        total = await self.count_referrals(referrer_id)
        qualifying = await self.count_qualifying_referrals(referrer_id, rule.qualifying_event)
        rewards = await self.get_rewards(referrer_id)
        issued = [r for r in rewards if r.status == RewardStatus.CREDITED.value]

        next_milestone_at = None
        if rule.enabled and rule.count > 0:
            next_milestone_at = (qualifying // rule.count + 1) * rule.count

        return {
            "referral_code": referral_code,
            "total_referrals": total,
            "qualifying_referrals": qualifying,
            "qualifying_event": rule.qualifying_event,
            "reward_enabled": rule.enabled,
            "threshold": rule.count,
            "reward_type": rule.reward_type,
            "reward_amount": rule.reward_amount,
            "rewards_issued": len(issued),
            "next_milestone_at": next_milestone_at,
            "referrals_to_next_reward": next_milestone_at - qualifying if next_milestone_at else None,
            "rewards": [
                {
                    "milestone": r.milestone,
                    "reward_type": r.reward_type,
                    "amount": r.amount,
                    "status": r.status,
                    "transaction_reference": r.transaction_reference,
                    "credited_at": r.credited_at,
                }
                for r in rewards
            ],
            "outcomes": [o.model_dump() for o in outcomes if o.status != RewardStatus.ALREADY_ISSUED],
        }
