import logging
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..database_model.store import Product, Order
from ..database_model.transaction import Transaction, TransactionType, TransactionStatus
from ..schemas.service_config import ServiceConfigSnapshot
from ..schemas.transaction_details import ProductPurchaseDetails
from ..services.config_service import ConfigService
from ..services.wallet_service import WalletService
from ..utils.references import generate_reference
from ..core.errors import NotFoundError, ValidationError, ServiceUnavailableError

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("wallet", "pay_on_delivery")


class StoreService:
    """Service for store products and orders."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.wallet_service = WalletService(db)

    async def list_products(self, category: Optional[str] = None) -> List[Product]:
        query = select(Product).where(Product.is_active == True)  # noqa: E712
        if category:
            query = query.where(Product.category == category)
        result = await self.db.execute(query.order_by(Product.name))
        return list(result.scalars().all())

    async def get_product(self, product_id: int) -> Product:
        result = await self.db.execute(select(Product).where(Product.id == product_id))
        product = result.scalar_one_or_none()
        if not product or not product.is_active:
            raise NotFoundError("Product not found")
        return product

    async def place_order(
        self,
        user_id: int,
        product_id: int,
        quantity: int = 1,
        payment_method: str = "wallet",
        shipping_address: Optional[str] = None,
        config: Optional[ServiceConfigSnapshot] = None
    ) -> Order:
        """Place an order.

        Wallet orders debit the wallet, create the order and a successful
        product_purchase row in one DB transaction. Pay-on-delivery orders
        record a pending row and leave the balance alone.

        Raises:
            ServiceUnavailableError: If the store is not active
            InsufficientFundsError: If a wallet order is not covered
        """
        if config is None:
            config = await ConfigService(self.db).get_snapshot()
        if not config.is_active("store"):
            raise ServiceUnavailableError("The store is currently unavailable")

        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        product = await self.get_product(product_id)
        if not product.in_stock:
            raise ValidationError(f"{product.name} is out of stock")

        total_amount = round(product.price * quantity, 2)
        reference = generate_reference("ORD")

        order = Order(
            user_id=user_id,
            product_id=product.id,
            quantity=quantity,
            total_amount=total_amount,
            payment_method=payment_method,
            status="processing" if payment_method == "wallet" else "pending",
            shipping_address=shipping_address,
            transaction_reference=reference
        )
        self.db.add(order)
        await self.db.flush()

        self.db.add(Transaction(
            user_id=user_id,
            type=TransactionType.PRODUCT_PURCHASE.value,
            amount=total_amount,
            status=TransactionStatus.SUCCESS.value if payment_method == "wallet" else TransactionStatus.PENDING.value,
            reference=reference,
            details=ProductPurchaseDetails(
                order_id=order.id, product_name=product.name, quantity=quantity,
                payment_method=payment_method
            ).model_dump(),
        ))

        if payment_method == "wallet":
            try:
                await self.wallet_service.debit_wallet(user_id, total_amount)
            except Exception:
                await self.db.rollback()
                raise

        await self.db.commit()
        await self.db.refresh(order)

        logger.info(f"Order {order.id} ({payment_method}) of {total_amount} placed by user {user_id}")
        return order

    async def list_orders(self, user_id: int) -> List[Order]:
        result = await self.db.execute(
            select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())
