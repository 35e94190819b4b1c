import asyncio
import logging
from typing import Optional, Dict, Any, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from ..database_model.profile import Profile
from ..database_model.transaction import Transaction, TransactionType, TransactionStatus, GATEWAY_TYPES
from ..payment_model.abstract_gateway import AbstractServiceGateway, GatewayRequest, GatewayResult, GatewayErrorKind
from ..payment_model.provider_factory import ServiceGatewayRouter
from ..schemas.service_config import ServiceConfigSnapshot, ServiceStatus
from ..schemas.transaction_details import parse_details, WalletFundingDetails
from ..services.config_service import ConfigService
from ..utils.references import generate_reference
from ..core.errors import (
    NotFoundError,
    InsufficientFundsError,
    ValidationError,
    ServiceUnavailableError,
    AdapterFailureError,
    AdapterTimeoutError,
    DuplicateFundingReferenceError,
)
from ..core.config import settings

logger = logging.getLogger(__name__)

PENDING = TransactionStatus.PENDING.value
SUCCESS = TransactionStatus.SUCCESS.value
FAILED = TransactionStatus.FAILED.value

DEBIT_AFTER_DELIVERY_FAILED = (
    "Provider delivered but the wallet debit could not be applied; "
    "manual reconciliation required"
)


class WalletService:
    """Service for wallet balances and the transaction ledger.

    ``debit_wallet`` and ``credit_wallet`` only issue the balance update; the
    caller decides when the surrounding DB transaction is committed.
    """

    def __init__(self, db: AsyncSession, gateway: Optional[AbstractServiceGateway] = None):
        self.db = db
        self.gateway = gateway or ServiceGatewayRouter()

    async def get_profile(self, user_id: int) -> Profile:
        result = await self.db.execute(
            select(Profile).where(Profile.id == user_id).execution_options(populate_existing=True)
        )
        profile = result.scalar_one_or_none()
        if not profile:
            raise NotFoundError("Profile not found")
        return profile

    async def get_balance(self, user_id: int) -> float:
        """Get the committed wallet balance of a profile."""
        result = await self.db.execute(
            select(Profile.wallet_balance).where(Profile.id == user_id)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise NotFoundError("Profile not found")
        return balance

    async def debit_wallet(self, user_id: int, amount: float) -> float:
        """Atomically take ``amount`` from the wallet if the balance covers it.

        Returns:
            float: Balance after the debit

        Raises:
            InsufficientFundsError: If the balance is lower than ``amount``
        """
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        result = await self.db.execute(
            update(Profile)
            .where(Profile.id == user_id, Profile.wallet_balance >= amount)
            .values(wallet_balance=Profile.wallet_balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Distinguishes a missing profile from a short balance
            await self.get_balance(user_id)
            raise InsufficientFundsError()
        return await self.get_balance(user_id)

    async def credit_wallet(self, user_id: int, amount: float) -> float:
        """Atomically add ``amount`` to the wallet. Returns the new balance."""
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        result = await self.db.execute(
            update(Profile)
            .where(Profile.id == user_id)
            .values(wallet_balance=Profile.wallet_balance + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError("Profile not found")
        return await self.get_balance(user_id)

    async def _set_status(self, transaction_id: int, status: str, **values) -> bool:
        """Move a pending transaction to ``status``. False when it was no longer pending."""
        result = await self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == PENDING)
            .values(status=status, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _reload(self, transaction: Transaction) -> Transaction:
        await self.db.refresh(transaction)
        return transaction

    def _check_service(self, config: ServiceConfigSnapshot, service: str) -> None:
        status = config.service_status(service)
        if status == ServiceStatus.COMING_SOON:
            raise ServiceUnavailableError(f"{service.capitalize()} service is coming soon")
        if status != ServiceStatus.ACTIVE:
            raise ServiceUnavailableError(f"{service.capitalize()} service is currently unavailable")

    async def submit_to_gateway(self, request: GatewayRequest) -> GatewayResult:
        """Call the gateway bounded by the configured timeout.

        An expired bound or an unexpected error is an unknown outcome.
        """
        try:
            return await asyncio.wait_for(
                self.gateway.submit(request),
                timeout=settings.gateway_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Gateway call for {request.reference} exceeded {settings.gateway_timeout_seconds}s")
            return GatewayResult.failed(GatewayErrorKind.TIMEOUT, "Provider did not respond in time")
        except Exception as e:
            logger.exception(f"Unexpected gateway error for {request.reference}")
            return GatewayResult.failed(GatewayErrorKind.TIMEOUT, f"Unexpected provider error: {str(e)}")

    async def purchase_service(
        self,
        user_id: int,
        transaction_type: str,
        amount: float,
        payload: Dict[str, Any],
        reference: Optional[str] = None,
        config: Optional[ServiceConfigSnapshot] = None
    ) -> Transaction:
        """Buy airtime, data, electricity or WAEC from the wallet.

        The wallet is debited only after the provider reports success.

        Args:
            user_id: Profile paying for the purchase
            transaction_type: One of airtime, data, electricity, waec
            amount: Price to debit
            payload: Type-specific details (network, phone, meter number, ...)
            reference: Caller-chosen unique reference, generated when omitted
            config: Admin settings snapshot, read when omitted

        Returns:
            Transaction: The successful transaction

        Raises:
            ValidationError: Bad amount, type or details
            ServiceUnavailableError: Service disabled or coming soon
            InsufficientFundsError: Balance lower than ``amount``; nothing is recorded
            AdapterFailureError: Provider definitely did not deliver; row is failed
            AdapterTimeoutError: Outcome unknown; row stays pending
        """
        if transaction_type not in {t.value for t in GATEWAY_TYPES}:
            raise ValidationError(f"Unsupported service type: {transaction_type}")
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        if amount < settings.min_purchase_amount:
            raise ValidationError(f"Minimum purchase amount is {settings.min_purchase_amount}")
        if amount > settings.max_purchase_amount:
            raise ValidationError(f"Maximum purchase amount is {settings.max_purchase_amount}")

        if config is None:
            config = await ConfigService(self.db).get_snapshot()
        self._check_service(config, transaction_type)

        details = parse_details(transaction_type, payload)

        balance = await self.get_balance(user_id)
        if amount > balance:
            logger.info(f"Purchase of {amount} refused for user {user_id}: balance {balance}")
            raise InsufficientFundsError()

        reference = reference or generate_reference("TRX")
        transaction = Transaction(
            user_id=user_id,
            type=transaction_type,
            amount=amount,
            status=PENDING,
            reference=reference,
            details=details.model_dump(),
        )
        self.db.add(transaction)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError(f"Transaction reference already exists: {reference}")
        await self.db.refresh(transaction)
        transaction_id = transaction.id

        logger.info(f"Submitting {transaction_type} purchase {reference} of {amount} for user {user_id}")
        result = await self.submit_to_gateway(GatewayRequest(
            transaction_type=transaction_type,
            reference=reference,
            amount=amount,
            details=transaction.details,
        ))

        if result.success:
            return await self._complete_purchase(transaction, transaction_id, user_id, amount, result)

        if result.is_unknown:
            if result.reference:
                await self.db.execute(
                    update(Transaction)
                    .where(Transaction.id == transaction_id)
                    .values(provider_reference=result.reference)
                    .execution_options(synchronize_session=False)
                )
                await self.db.commit()
            logger.warning(f"Purchase {reference} outcome unknown, left pending: {result.message}")
            raise AdapterTimeoutError(reference=reference)

        await self._set_status(transaction_id, FAILED, failure_reason=result.message)
        await self.db.commit()
        logger.error(f"Purchase {reference} failed ({result.error_kind.value}): {result.message}")
        raise AdapterFailureError(result.error_kind.value, reference=reference)

    async def _complete_purchase(
        self,
        transaction: Transaction,
        transaction_id: int,
        user_id: int,
        amount: float,
        result: GatewayResult
    ) -> Transaction:
        """Flip to success and debit in one DB transaction."""
        reference = transaction.reference
        details = dict(transaction.details or {})
        if result.raw.get("token"):
            details["token"] = result.raw["token"]

        flipped = await self._set_status(
            transaction_id, SUCCESS, provider_reference=result.reference, details=details
        )
        if not flipped:
            # Resolved elsewhere (manual reconciliation) while the provider was working
            await self.db.rollback()
            logger.warning(f"Purchase {reference} was no longer pending after provider success")
            transaction = await self._reload(transaction)
            if transaction.status != SUCCESS:
                raise AdapterTimeoutError(
                    reference=reference,
                    detail=f"Transaction {reference} was marked {transaction.status} during processing. "
                           "Please contact support."
                )
            return transaction

        try:
            await self.debit_wallet(user_id, amount)
        except InsufficientFundsError:
            await self.db.rollback()
            await self.db.execute(
                update(Transaction)
                .where(Transaction.id == transaction_id, Transaction.status == PENDING)
                .values(provider_reference=result.reference, failure_reason=DEBIT_AFTER_DELIVERY_FAILED)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            logger.error(f"Purchase {reference} delivered but debit of {amount} failed for user {user_id}")
            raise AdapterTimeoutError(
                reference=reference,
                detail=f"Transaction {reference} is pending review. Please contact support."
            )

        await self.db.commit()
        logger.info(f"Purchase {reference} succeeded, debited {amount} from user {user_id}")
        return await self._reload(transaction)

    def funding_breakdown(
        self,
        amount: float,
        payment_method: str,
        config: ServiceConfigSnapshot
    ) -> Tuple[float, float, Dict[str, Any]]:
        """Charge, net credit and row details for a gross deposit of ``amount``."""
        charge = config.funding_charge.compute(amount)
        net_amount = round(amount - charge, 2)
        if net_amount <= 0:
            raise ValidationError("Funding amount does not cover the service charge")

        details = WalletFundingDetails(
            payment_method=payment_method, gross_amount=amount, charge=charge
        ).model_dump()
        return charge, net_amount, details

    async def initiate_funding(
        self,
        user_id: int,
        amount: float,
        provider_reference: str,
        payment_method: str = "bank_transfer"
    ) -> Transaction:
        """Record a pending wallet funding awaiting the provider's confirmation."""
        if amount < settings.min_funding_amount:
            raise ValidationError(f"Minimum funding amount is {settings.min_funding_amount}")
        if amount > settings.max_funding_amount:
            raise ValidationError(f"Maximum funding amount is {settings.max_funding_amount}")
        await self.get_profile(user_id)

        transaction = Transaction(
            user_id=user_id,
            type=TransactionType.WALLET_FUNDING.value,
            amount=amount,
            status=PENDING,
            reference=provider_reference,
            provider_reference=provider_reference,
            details=WalletFundingDetails(payment_method=payment_method, gross_amount=amount).model_dump(),
        )
        self.db.add(transaction)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateFundingReferenceError(provider_reference)

        await self.db.refresh(transaction)
        logger.info(f"Funding {provider_reference} of {amount} initiated for user {user_id}")
        return transaction

    async def fund_wallet(
        self,
        user_id: int,
        amount: float,
        provider_reference: str,
        payment_method: str = "bank_transfer",
        config: Optional[ServiceConfigSnapshot] = None
    ) -> Transaction:
        """Credit a confirmed payment to the wallet, once per provider reference.

        Args:
            user_id: Profile being funded
            amount: Gross amount paid
            provider_reference: Payment provider reference
            payment_method: How the user paid
            config: Admin settings snapshot, read when omitted

        Returns:
            Transaction: Successful wallet_funding row holding the net credit

        Raises:
            DuplicateFundingReferenceError: Reference already credited
            ValidationError: Bad amount, or a charge that eats the whole deposit
        """
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        if config is None:
            config = await ConfigService(self.db).get_snapshot()
        charge, net_amount, details = self.funding_breakdown(amount, payment_method, config)

        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.reference == provider_reference)
            .execution_options(populate_existing=True)
        )
        existing = result.scalar_one_or_none()

        if existing:
            if existing.type != TransactionType.WALLET_FUNDING.value or existing.user_id != user_id:
                raise ValidationError(f"Reference {provider_reference} belongs to another transaction")
            if existing.status == SUCCESS:
                logger.warning(f"Duplicate funding notification for {provider_reference}")
                raise DuplicateFundingReferenceError(provider_reference)
            if existing.status == FAILED:
                raise ValidationError(f"Funding {provider_reference} was already marked failed")

            existing_id = existing.id
            if not await self._set_status(existing_id, SUCCESS, amount=net_amount, details=details):
                await self.db.rollback()
                logger.warning(f"Funding {provider_reference} confirmed concurrently")
                raise DuplicateFundingReferenceError(provider_reference)
            await self.credit_wallet(user_id, net_amount)
            await self.db.commit()
            transaction = await self._reload(existing)
        else:
            await self.get_profile(user_id)
            transaction = Transaction(
                user_id=user_id,
                type=TransactionType.WALLET_FUNDING.value,
                amount=net_amount,
                status=SUCCESS,
                reference=provider_reference,
                provider_reference=provider_reference,
                details=details,
            )
            self.db.add(transaction)
            try:
                await self.db.flush()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(f"Funding {provider_reference} recorded concurrently")
                raise DuplicateFundingReferenceError(provider_reference)
            await self.credit_wallet(user_id, net_amount)
            await self.db.commit()
            await self.db.refresh(transaction)

        logger.info(
            f"Wallet of user {user_id} funded with {net_amount} "
            f"(gross {amount}, charge {charge}) ref {provider_reference}"
        )
        return transaction

    async def fail_funding(self, provider_reference: str, reason: str) -> Transaction:
        """Mark a pending funding as failed. The balance is not touched."""
        result = await self.db.execute(
            select(Transaction).where(
                Transaction.reference == provider_reference,
                Transaction.type == TransactionType.WALLET_FUNDING.value
            ).execution_options(populate_existing=True)
        )
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise NotFoundError(f"Funding not found: {provider_reference}")

        if not await self._set_status(transaction.id, FAILED, failure_reason=reason):
            logger.warning(f"Funding {provider_reference} is already {transaction.status}, ignoring failure")
            return transaction

        await self.db.commit()
        logger.info(f"Funding {provider_reference} failed: {reason}")
        return await self._reload(transaction)

    async def get_transaction_history(
        self,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
        transaction_type: Optional[str] = None,
        status: Optional[str] = None
    ) -> List[Transaction]:
        """Get a profile's transactions, newest first."""
        query = select(Transaction).where(Transaction.user_id == user_id)
        if transaction_type:
            query = query.where(Transaction.type == transaction_type)
        if status:
            query = query.where(Transaction.status == status)

        query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).offset(offset).limit(limit)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def count_transactions(
        self,
        user_id: int,
        transaction_type: Optional[str] = None,
        status: Optional[str] = None
    ) -> int:
        query = select(func.count(Transaction.id)).where(Transaction.user_id == user_id)
        if transaction_type:
            query = query.where(Transaction.type == transaction_type)
        if status:
            query = query.where(Transaction.status == status)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def get_transaction_by_reference(self, reference: str, user_id: Optional[int] = None) -> Transaction:
        """Get a transaction by its reference, optionally scoped to one profile."""
        query = select(Transaction).where(Transaction.reference == reference)
        if user_id is not None:
            query = query.where(Transaction.user_id == user_id)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise NotFoundError("Transaction not found")
        return transaction
