import logging
from enum import Enum
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession

from ..database_model.profile import Profile
from ..database_model.transaction import Transaction
from ..payment_model.abstract_gateway import AbstractServiceGateway
from ..schemas.service_config import ServiceConfigSnapshot
from ..services.wallet_service import WalletService
from ..services.profile_service import ProfileService
from ..core.errors import (
    HaamanException,
    ValidationError,
    PinNotSetError,
    InvalidPinError,
    AdapterTimeoutError,
)

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    IDLE = "idle"
    AWAITING_AUTH = "awaiting_auth"
    SUBMITTING = "submitting"
    RESOLVED = "resolved"


class FlowResult(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class PurchaseFlow:
    """One purchase from confirmation to result, independent of HTTP.

    idle -> awaiting_auth -> submitting -> resolved(success | failed | pending)
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: Optional[AbstractServiceGateway] = None,
        config: Optional[ServiceConfigSnapshot] = None
    ):
        self.wallet_service = WalletService(db, gateway)
        self.profile_service = ProfileService(db)
        self.config = config
        self.reset()

    def reset(self) -> None:
        self.state = FlowState.IDLE
        self.result: Optional[FlowResult] = None
        self.profile: Optional[Profile] = None
        self.transaction_type: Optional[str] = None
        self.amount: Optional[float] = None
        self.payload: Dict[str, Any] = {}
        self.reference: Optional[str] = None
        self.transaction: Optional[Transaction] = None
        self.error: Optional[HaamanException] = None

    def _require(self, state: FlowState) -> None:
        if self.state != state:
            raise ValidationError(f"Purchase flow is {self.state.value}, expected {state.value}")

    def start(
        self,
        profile: Profile,
        transaction_type: str,
        amount: float,
        payload: Dict[str, Any],
        reference: Optional[str] = None
    ) -> FlowState:
        """Begin a purchase; the user must then confirm it with their PIN."""
        self._require(FlowState.IDLE)
        if not profile.has_pin:
            raise PinNotSetError()

        self.profile = profile
        self.transaction_type = transaction_type
        self.amount = amount
        self.payload = dict(payload or {})
        self.reference = reference
        self.state = FlowState.AWAITING_AUTH
        return self.state

    async def authorize(self, pin: str) -> FlowResult:
        """Verify the PIN and submit the purchase.

        A wrong PIN raises InvalidPinError and leaves the flow awaiting auth.
        Ledger errors resolve the flow as failed or pending and are kept on
        ``error``.
        """
        self._require(FlowState.AWAITING_AUTH)
        if not self.profile_service.verify_pin(self.profile, pin):
            logger.warning(f"Invalid PIN for profile {self.profile.id}")
            raise InvalidPinError()

        self.state = FlowState.SUBMITTING
        try:
            self.transaction = await self.wallet_service.purchase_service(
                self.profile.id,
                self.transaction_type,
                self.amount,
                self.payload,
                reference=self.reference,
                config=self.config,
            )
            self.result = FlowResult.SUCCESS
        except AdapterTimeoutError as e:
            self.error = e
            self.reference = e.reference
            self.result = FlowResult.PENDING
        except HaamanException as e:
            self.error = e
            self.reference = getattr(e, "reference", None) or self.reference
            self.result = FlowResult.FAILED
        finally:
            self.state = FlowState.RESOLVED

        return self.result
