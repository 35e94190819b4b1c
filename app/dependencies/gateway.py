from typing import Optional
from app.payment_model.abstract_gateway import AbstractServiceGateway
from app.payment_model.provider_factory import ServiceGatewayRouter

_gateway: Optional[AbstractServiceGateway] = None


def get_service_gateway() -> AbstractServiceGateway:
    """Shared gateway router; overridden with a fake in tests."""
    global _gateway
    if _gateway is None:
        _gateway = ServiceGatewayRouter()
    return _gateway
