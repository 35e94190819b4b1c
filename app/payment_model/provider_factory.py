from typing import Dict, Any, Optional, Type
import httpx
from .abstract_gateway import AbstractServiceGateway, GatewayRequest, GatewayResult
from .http_gateway import AirtimeGateway, DataGateway, ElectricityGateway, WaecGateway
from ..core.config import settings
from ..core.errors import ValidationError

class GatewayFactory:
    """Factory class to create gateway instances based on transaction type."""

    # Mapping of transaction types to their corresponding gateway classes
    GATEWAY_CLASSES: Dict[str, Type[AbstractServiceGateway]] = {
        "airtime": AirtimeGateway,
        "data": DataGateway,
        "electricity": ElectricityGateway,
        "waec": WaecGateway,
    }

    # Referral rewards are delivered through the purchase gateways
    REWARD_TYPES: Dict[str, str] = {
        "airtime": "airtime",
        "data_bundle": "data",
    }

    PROVIDER_CONFIGS: Dict[str, Dict[str, Any]] = {
        "airtime": {"name": "Airtime Provider"},
        "data": {"name": "Data Provider"},
        "electricity": {"name": "Electricity Provider"},
        "waec": {"name": "WAEC Provider"},
    }

    @classmethod
    def resolve_type(cls, transaction_type: str) -> str:
        """Map a reward type onto the transaction type that delivers it."""
        return cls.REWARD_TYPES.get(transaction_type, transaction_type)

    @classmethod
    def create_gateway(
        cls,
        transaction_type: str,
        additional_config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> AbstractServiceGateway:
        """Create a gateway instance for a transaction type.

        Args:
            transaction_type: Transaction or reward type (e.g. 'airtime', 'data_bundle')
            additional_config: Additional configuration to override defaults
            transport: Optional httpx transport, used by tests

        Returns:
            AbstractServiceGateway: Configured gateway instance

        Raises:
            ValidationError: If the type has no gateway
        """
        gateway_type = cls.resolve_type(transaction_type)
        if gateway_type not in cls.GATEWAY_CLASSES:
            raise ValidationError(f"Unsupported service type: {transaction_type}")

        config = {
            "api_endpoint": settings.gateway_base_url,
            "api_key": settings.gateway_api_key,
            "timeout": settings.gateway_timeout_seconds,
        }
        config.update(cls.PROVIDER_CONFIGS.get(gateway_type, {}))
        if additional_config:
            config.update(additional_config)

        gateway_class = cls.GATEWAY_CLASSES[gateway_type]
        return gateway_class(config, transport=transport)

    @classmethod
    def is_supported(cls, transaction_type: str) -> bool:
        return cls.resolve_type(transaction_type) in cls.GATEWAY_CLASSES


class ServiceGatewayRouter(AbstractServiceGateway):
    """Single entry point that dispatches each request to its type's gateway."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(config)
        self.transport = transport
        self._gateways: Dict[str, AbstractServiceGateway] = {}

    def gateway_for(self, transaction_type: str) -> AbstractServiceGateway:
        gateway_type = GatewayFactory.resolve_type(transaction_type)
        if gateway_type not in self._gateways:
            self._gateways[gateway_type] = GatewayFactory.create_gateway(
                gateway_type, self.config, transport=self.transport
            )
        return self._gateways[gateway_type]

    async def submit(self, request: GatewayRequest) -> GatewayResult:
        return await self.gateway_for(request.transaction_type).submit(request)
