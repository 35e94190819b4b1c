import logging
from typing import Optional, List, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..database_model.beneficiary import Beneficiary
from ..database_model.transaction import Transaction, TransactionStatus
from ..schemas.transaction_details import NETWORKS
from ..core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

BENEFICIARY_TYPES = ("airtime", "data")


class BeneficiaryService:
    """Service for saved airtime and data recipients."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_beneficiary(self, user_id: int, phone_number: str, beneficiary_type: str) -> Optional[Beneficiary]:
        result = await self.db.execute(
            select(Beneficiary).where(
                Beneficiary.user_id == user_id,
                Beneficiary.phone_number == phone_number,
                Beneficiary.type == beneficiary_type
            )
        )
        return result.scalars().first()

    async def save_beneficiary(
        self,
        user_id: int,
        name: str,
        phone_number: str,
        network: str,
        beneficiary_type: str
    ) -> Beneficiary:
        """Save a recipient. An existing (phone, type) entry is returned unchanged."""
        if beneficiary_type not in BENEFICIARY_TYPES:
            raise ValidationError(f"Beneficiary type must be one of: {', '.join(BENEFICIARY_TYPES)}")
        network = network.upper()
        if network not in NETWORKS:
            raise ValidationError(f"Network must be one of: {', '.join(NETWORKS)}")
        if not name or not name.strip():
            raise ValidationError("Beneficiary name is required")

        existing = await self.get_beneficiary(user_id, phone_number, beneficiary_type)
        if existing:
            return existing

        beneficiary = Beneficiary(
            user_id=user_id,
            name=name.strip(),
            phone_number=phone_number,
            network=network,
            type=beneficiary_type
        )
        self.db.add(beneficiary)
        await self.db.commit()
        await self.db.refresh(beneficiary)

        logger.info(f"Beneficiary {beneficiary.id} saved for user {user_id}")
        return beneficiary

    async def list_beneficiaries(self, user_id: int, beneficiary_type: Optional[str] = None) -> List[Beneficiary]:
        query = select(Beneficiary).where(Beneficiary.user_id == user_id)
        if beneficiary_type:
            query = query.where(Beneficiary.type == beneficiary_type)
        result = await self.db.execute(query.order_by(Beneficiary.created_at.desc(), Beneficiary.id.desc()))
        return list(result.scalars().all())

    async def suggest_from_history(self, user_id: int, beneficiary_type: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Recent unique recipients of successful purchases of ``beneficiary_type``."""
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.type == beneficiary_type,
                Transaction.status == TransactionStatus.SUCCESS.value
            )
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(50)
        )

        suggestions = []
        seen = set()
        for transaction in result.scalars().all():
            details = transaction.details or {}
            phone = details.get("phone")
            if not phone or phone in seen:
                continue
            seen.add(phone)
            suggestions.append({"phone_number": phone, "network": details.get("network")})
            if len(suggestions) >= limit:
                break
        return suggestions

    async def delete_beneficiary(self, user_id: int, beneficiary_id: int) -> None:
        result = await self.db.execute(
            select(Beneficiary).where(Beneficiary.id == beneficiary_id, Beneficiary.user_id == user_id)
        )
        beneficiary = result.scalar_one_or_none()
        if not beneficiary:
            raise NotFoundError("Beneficiary not found")

        await self.db.delete(beneficiary)
        await self.db.commit()
