from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

class GatewayErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    UPSTREAM_REJECTED = "upstream-rejected"
    UPSTREAM_UNAVAILABLE = "upstream-unavailable"

class GatewayRequest(BaseModel):
    """Purchase request sent to a service provider."""
    transaction_type: str
    reference: str
    amount: float
    details: Dict[str, Any] = Field(default_factory=dict)

class GatewayResult(BaseModel):
    """Outcome reported by a service provider."""
    success: bool
    reference: Optional[str] = None  # provider reference
    error_kind: Optional[GatewayErrorKind] = None
    message: str = ""
    amount_charged: Optional[float] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_unknown(self) -> bool:
        """True when the provider may or may not have delivered."""
        return not self.success and self.error_kind == GatewayErrorKind.TIMEOUT

    @classmethod
    def ok(cls, reference: Optional[str], message: str = "Transaction successful", **kwargs) -> "GatewayResult":
        return cls(success=True, reference=reference, message=message, **kwargs)

    @classmethod
    def failed(cls, kind: GatewayErrorKind, message: str, **kwargs) -> "GatewayResult":
        return cls(success=False, error_kind=kind, message=message, **kwargs)

class AbstractServiceGateway(ABC):
    """Abstract base class for all service provider gateways."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.name = self.config.get("name", "Unknown Provider")
        self.api_endpoint = self.config.get("api_endpoint")
        self.api_key = self.config.get("api_key")
        self.timeout = self.config.get("timeout", 30)

    @abstractmethod
    async def submit(self, request: GatewayRequest) -> GatewayResult:
        """Submit a purchase to the provider.

        Implementations never retry and never raise for provider or network
        problems; those are reported through ``GatewayResult.error_kind``.

        Args:
            request: Purchase details

        Returns:
            GatewayResult: Provider outcome
        """
        pass
