import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, case

from ..database_model.admin_setting import AdminLog
from ..database_model.referral_reward import ReferralReward
from ..database_model.transaction import Transaction, TransactionType, TransactionStatus, is_debit
from ..services.wallet_service import WalletService
from ..services.config_service import ConfigService
from ..core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class AdminService:
    """Admin operations: manual reconciliation and reporting."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.wallet_service = WalletService(db)

    async def get_transaction(self, transaction_id: int) -> Transaction:
        result = await self.db.execute(
            select(Transaction).where(Transaction.id == transaction_id).execution_options(populate_existing=True)
        )
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise NotFoundError("Transaction not found")
        return transaction

    async def update_transaction_status(
        self,
        admin_id: int,
        transaction_id: int,
        new_status: str,
        reason: Optional[str] = None
    ) -> Transaction:
        """Resolve a pending transaction by hand.

        Success on a debit type takes the amount from the wallet unless the
        order is paid on delivery. Success on a wallet funding credits the
        deposit net of the funding charge. Failure leaves the balance alone.

        Raises:
            ValidationError: If the transaction is not pending or the status is invalid
            InsufficientFundsError: If a debit can no longer be covered
        """
        if new_status not in (TransactionStatus.SUCCESS.value, TransactionStatus.FAILED.value):
            raise ValidationError("Status must be 'success' or 'failed'")

        transaction = await self.get_transaction(transaction_id)
        if transaction.status != TransactionStatus.PENDING.value:
            raise ValidationError(f"Transaction already {transaction.status}")

        user_id = transaction.user_id
        amount = transaction.amount
        transaction_type = transaction.type
        old_status = transaction.status
        details = dict(transaction.details or {})

        values = {"status": new_status}
        if new_status == TransactionStatus.FAILED.value:
            values["failure_reason"] = reason or "Marked failed by admin"
        elif transaction_type == TransactionType.WALLET_FUNDING.value:
            config = await ConfigService(self.db).get_snapshot()
            _, amount, funding_details = self.wallet_service.funding_breakdown(
                details.get("gross_amount") or amount,
                details.get("payment_method") or "bank_transfer",
                config
            )
            values["amount"] = amount
            values["details"] = funding_details

        result = await self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == TransactionStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise ValidationError("Transaction was resolved concurrently")

        if new_status == TransactionStatus.SUCCESS.value:
            try:
                # Pay-on-delivery orders are settled in cash, not from the wallet
                if is_debit(transaction_type) and details.get("payment_method") != "pay_on_delivery":
                    await self.wallet_service.debit_wallet(user_id, amount)
                elif transaction_type == TransactionType.WALLET_FUNDING.value:
                    await self.wallet_service.credit_wallet(user_id, amount)
            except Exception:
                await self.db.rollback()
                raise

        if transaction_type == TransactionType.REFERRAL_REWARD.value:
            # Gateway rewards were delivered to the phone; only the marker follows
            marker_values = {"status": "credited" if new_status == TransactionStatus.SUCCESS.value else "failed"}
            if new_status == TransactionStatus.SUCCESS.value:
                marker_values["credited_at"] = func.now()
            await self.db.execute(
                update(ReferralReward)
                .where(ReferralReward.transaction_reference == transaction.reference)
                .values(**marker_values)
                .execution_options(synchronize_session=False)
            )

        self.db.add(AdminLog(
            admin_id=admin_id,
            action="update_transaction_status",
            details={
                "transaction_id": transaction_id,
                "reference": transaction.reference,
                "old_status": old_status,
                "new_status": new_status,
                "reason": reason,
            }
        ))
        await self.db.commit()
        await self.db.refresh(transaction)

        logger.info(f"Admin {admin_id} moved transaction {transaction_id} from {old_status} to {new_status}")
        return transaction

    async def transaction_summary(self) -> Dict[str, Any]:
        """Counts per type and status, and successful volume per type."""
        success = TransactionStatus.SUCCESS.value
        result = await self.db.execute(
            select(
                Transaction.type,
                Transaction.status,
                func.count(Transaction.id),
                func.coalesce(func.sum(case((Transaction.status == success, Transaction.amount), else_=0.0)), 0.0),
            ).group_by(Transaction.type, Transaction.status)
        )

        by_type: Dict[str, Dict[str, Any]] = {}
        totals = {"count": 0, "success_volume": 0.0}
        for transaction_type, status, count, volume in result.all():
            entry = by_type.setdefault(
                transaction_type,
                {"pending": 0, "success": 0, "failed": 0, "success_volume": 0.0}
            )
            entry[status] = count
            entry["success_volume"] = round(entry["success_volume"] + volume, 2)
            totals["count"] += count
            totals["success_volume"] = round(totals["success_volume"] + volume, 2)

        return {"by_type": by_type, "totals": totals}
