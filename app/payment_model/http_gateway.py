import logging
import httpx
from typing import Dict, Any, Optional
from .abstract_gateway import AbstractServiceGateway, GatewayErrorKind, GatewayRequest, GatewayResult

logger = logging.getLogger(__name__)

# Provider statuses that mean "accepted, not yet delivered"
PENDING_STATUSES = {"pending", "processing", "initiated"}

# Provider messages that mean the provider cannot serve right now
UNAVAILABLE_HINTS = ("insufficient balance", "insufficient fund", "service unavailable", "maintenance")


class HttpServiceGateway(AbstractServiceGateway):
    """JSON-over-HTTP gateway to the telco / bill aggregator.

    Subclasses set ``endpoint`` and build the provider payload.
    """

    endpoint = "/purchase"

    def __init__(self, config: Optional[Dict[str, Any]] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        self.transport = transport

    def build_payload(self, request: GatewayRequest) -> Dict[str, Any]:
        payload = {
            "request_id": request.reference,
            "amount": request.amount,
        }
        payload.update({k: v for k, v in request.details.items() if k != "kind" and v is not None})
        return payload

    def _headers(self) -> Dict[str, str]:
        return {
            "api-key": self.api_key or "",
            "Content-Type": "application/json"
        }

    async def submit(self, request: GatewayRequest) -> GatewayResult:
        """Post the purchase and classify the outcome."""
        url = f"{self.api_endpoint}{self.endpoint}"
        payload = self.build_payload(request)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers=self._headers())

        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            # The request never reached the provider
            logger.warning(f"{self.name}: connection failed for {request.reference}: {e}")
            return GatewayResult.failed(GatewayErrorKind.NETWORK, f"Unable to connect to {self.name}")
        except httpx.TimeoutException as e:
            logger.warning(f"{self.name}: timeout for {request.reference}: {e}")
            return GatewayResult.failed(GatewayErrorKind.TIMEOUT, f"{self.name} did not respond in time")
        except httpx.RequestError as e:
            logger.warning(f"{self.name}: request error for {request.reference}: {e}")
            return GatewayResult.failed(GatewayErrorKind.NETWORK, f"{self.name} request error: {str(e)}")

        return self.parse_response(request, response)

    def parse_response(self, request: GatewayRequest, response: httpx.Response) -> GatewayResult:
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"raw": data}

        if response.status_code >= 500:
            return GatewayResult.failed(
                GatewayErrorKind.UPSTREAM_UNAVAILABLE,
                data.get("message", f"{self.name} unavailable: {response.status_code}"),
                raw=data
            )

        if response.status_code >= 400:
            return GatewayResult.failed(
                GatewayErrorKind.UPSTREAM_REJECTED,
                data.get("message", f"{self.name} rejected the request: {response.status_code}"),
                raw=data
            )

        payment_data = data.get("data") or {}
        provider_status = str(data.get("status") or payment_data.get("status") or "").lower()
        message = data.get("message", "")

        if provider_status in PENDING_STATUSES:
            return GatewayResult.failed(
                GatewayErrorKind.TIMEOUT,
                message or f"{self.name} is still processing the request",
                reference=payment_data.get("reference"),
                raw=data
            )

        if not data.get("success", False):
            kind = GatewayErrorKind.UPSTREAM_REJECTED
            if any(hint in message.lower() for hint in UNAVAILABLE_HINTS):
                kind = GatewayErrorKind.UPSTREAM_UNAVAILABLE
            return GatewayResult.failed(kind, message or "Transaction failed", raw=data)

        return GatewayResult.ok(
            reference=payment_data.get("reference") or payment_data.get("transaction_id"),
            message=message or "Transaction successful",
            amount_charged=payment_data.get("amount"),
            raw=data
        )


class AirtimeGateway(HttpServiceGateway):
    """Airtime top-up for MTN, Airtel, Glo, 9mobile."""
    endpoint = "/airtime"

    def build_payload(self, request: GatewayRequest) -> Dict[str, Any]:
        return {
            "request_id": request.reference,
            "network": (request.details.get("network") or "").lower() or None,
            "phone": request.details.get("phone"),
            "amount": request.amount,
        }


class DataGateway(HttpServiceGateway):
    endpoint = "/data"

    def build_payload(self, request: GatewayRequest) -> Dict[str, Any]:
        return {
            "request_id": request.reference,
            "network": (request.details.get("network") or "").lower() or None,
            "phone": request.details.get("phone"),
            "plan": request.details.get("plan") or request.details.get("data_size"),
            "amount": request.amount,
        }


class ElectricityGateway(HttpServiceGateway):
    endpoint = "/electricity"

    def build_payload(self, request: GatewayRequest) -> Dict[str, Any]:
        return {
            "request_id": request.reference,
            "disco": request.details.get("disco"),
            "meter_number": request.details.get("meter_number"),
            "meter_type": request.details.get("meter_type", "prepaid"),
            "amount": request.amount,
        }

    def parse_response(self, request: GatewayRequest, response: httpx.Response) -> GatewayResult:
        result = super().parse_response(request, response)
        if result.success:
            # Prepaid meters get a token back
            token = (result.raw.get("data") or {}).get("token")
            if token:
                result.raw.setdefault("token", token)
        return result


class WaecGateway(HttpServiceGateway):
    endpoint = "/waec"

    def build_payload(self, request: GatewayRequest) -> Dict[str, Any]:
        return {
            "request_id": request.reference,
            "exam_type": request.details.get("exam_type"),
            "quantity": request.details.get("quantity", 1),
            "amount": request.amount,
        }
