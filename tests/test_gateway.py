import json
import httpx
import pytest

from app.core.errors import ValidationError
from app.payment_model.abstract_gateway import GatewayErrorKind, GatewayRequest
from app.payment_model.http_gateway import AirtimeGateway, DataGateway, ElectricityGateway
from app.payment_model.provider_factory import GatewayFactory, ServiceGatewayRouter

API_ENDPOINT = "https://provider.test/api"


def json_handler(status_code: int, body, seen: list = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=body)
    return handler


def raising_handler(exc_class):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_class("provider unreachable", request=request)
    return handler


def make_gateway(gateway_class, handler):
    return gateway_class(
        {"name": "Test Provider", "api_endpoint": API_ENDPOINT, "api_key": "test-key", "timeout": 5},
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def airtime_request():
    return GatewayRequest(
        transaction_type="airtime",
        reference="TRX-ABC123",
        amount=500.0,
        details={"kind": "airtime", "network": "MTN", "phone": "08031234567"},
    )


@pytest.mark.unit
@pytest.mark.gateway
class TestHttpServiceGateway:
    """Test suite for provider response classification."""

    async def test_success(self, airtime_request):
        seen = []
        gateway = make_gateway(AirtimeGateway, json_handler(200, {
            "success": True,
            "status": "successful",
            "message": "Airtime sent",
            "data": {"reference": "PRV-1", "amount": 500},
        }, seen))

        result = await gateway.submit(airtime_request)

        assert result.success is True
        assert result.reference == "PRV-1"
        assert result.amount_charged == 500
        assert result.message == "Airtime sent"

        sent = seen[0]
        assert str(sent.url) == f"{API_ENDPOINT}/airtime"
        assert sent.headers["api-key"] == "test-key"
        assert json.loads(sent.content) == {
            "request_id": "TRX-ABC123",
            "network": "mtn",
            "phone": "08031234567",
            "amount": 500.0,
        }

    @pytest.mark.parametrize("status_code,body,kind", [
        (400, {"message": "Invalid phone number"}, GatewayErrorKind.UPSTREAM_REJECTED),
        (503, {"message": "Down for maintenance"}, GatewayErrorKind.UPSTREAM_UNAVAILABLE),
        (200, {"success": False, "message": "Invalid meter"}, GatewayErrorKind.UPSTREAM_REJECTED),
        (200, {"success": False, "message": "Insufficient balance on vendor account"},
         GatewayErrorKind.UPSTREAM_UNAVAILABLE),
        (200, {"success": True, "status": "processing"}, GatewayErrorKind.TIMEOUT),
        (202, {"data": {"status": "pending", "reference": "PRV-2"}}, GatewayErrorKind.TIMEOUT),
    ])
    async def test_failure_classification(self, airtime_request, status_code, body, kind):
        gateway = make_gateway(AirtimeGateway, json_handler(status_code, body))

        result = await gateway.submit(airtime_request)

        assert result.success is False
        assert result.error_kind == kind

    async def test_pending_keeps_provider_reference(self, airtime_request):
        gateway = make_gateway(AirtimeGateway, json_handler(200, {"data": {"status": "pending", "reference": "PRV-2"}}))

        result = await gateway.submit(airtime_request)

        assert result.is_unknown
        assert result.reference == "PRV-2"

    async def test_non_json_error_body(self, airtime_request):
        gateway = make_gateway(AirtimeGateway, lambda request: httpx.Response(502, text="Bad Gateway"))

        result = await gateway.submit(airtime_request)

        assert result.error_kind == GatewayErrorKind.UPSTREAM_UNAVAILABLE

    async def test_connect_error_is_network(self, airtime_request):
        gateway = make_gateway(AirtimeGateway, raising_handler(httpx.ConnectError))

        result = await gateway.submit(airtime_request)

        assert result.error_kind == GatewayErrorKind.NETWORK
        assert result.is_unknown is False

    async def test_read_timeout_is_unknown(self, airtime_request):
        gateway = make_gateway(AirtimeGateway, raising_handler(httpx.ReadTimeout))

        result = await gateway.submit(airtime_request)

        assert result.error_kind == GatewayErrorKind.TIMEOUT
        assert result.is_unknown is True

    async def test_data_payload_uses_plan(self):
        seen = []
        gateway = make_gateway(DataGateway, json_handler(200, {"success": True, "data": {"reference": "PRV-3"}}, seen))

        await gateway.submit(GatewayRequest(
            transaction_type="data_bundle",
            reference="RWD-1",
            amount=500.0,
            details={"network": "GLO", "phone": "08051234567", "plan": "1GB"},
        ))

        body = json.loads(seen[0].content)
        assert str(seen[0].url).endswith("/data")
        assert body["plan"] == "1GB"
        assert body["network"] == "glo"

    async def test_missing_network_sent_as_null(self):
        seen = []
        gateway = make_gateway(DataGateway, json_handler(200, {"success": True, "data": {"reference": "PRV-5"}}, seen))

        await gateway.submit(GatewayRequest(
            transaction_type="data_bundle",
            reference="RWD-2",
            amount=500.0,
            details={"network": None, "phone": "07000000000", "plan": "1GB"},
        ))

        body = json.loads(seen[0].content)
        assert body["network"] is None

    async def test_electricity_token(self):
        gateway = make_gateway(ElectricityGateway, json_handler(200, {
            "success": True,
            "data": {"transaction_id": "PRV-4", "token": "1234-5678-9012"},
        }))

        result = await gateway.submit(GatewayRequest(
            transaction_type="electricity",
            reference="TRX-ELEC",
            amount=2000.0,
            details={"disco": "IKEDC", "meter_number": "45012345678", "meter_type": "prepaid"},
        ))

        assert result.reference == "PRV-4"
        assert result.raw["token"] == "1234-5678-9012"


@pytest.mark.unit
@pytest.mark.gateway
class TestGatewayFactory:

    @pytest.mark.parametrize("transaction_type,gateway_class", [
        ("airtime", AirtimeGateway),
        ("data", DataGateway),
        ("data_bundle", DataGateway),
        ("electricity", ElectricityGateway),
    ])
    def test_create_gateway(self, transaction_type, gateway_class):
        gateway = GatewayFactory.create_gateway(transaction_type, {"api_endpoint": API_ENDPOINT})

        assert isinstance(gateway, gateway_class)
        assert gateway.api_endpoint == API_ENDPOINT

    def test_unsupported_type(self):
        assert GatewayFactory.is_supported("tv") is False
        with pytest.raises(ValidationError):
            GatewayFactory.create_gateway("tv")

    async def test_router_dispatches_by_type(self, airtime_request):
        seen = []
        router = ServiceGatewayRouter(
            {"api_endpoint": API_ENDPOINT},
            transport=httpx.MockTransport(json_handler(200, {"success": True, "data": {"reference": "PRV-5"}}, seen)),
        )

        result = await router.submit(airtime_request)
        await router.submit(airtime_request.model_copy(update={"transaction_type": "data_bundle"}))

        assert result.success is True
        assert [request.url.path for request in seen] == ["/api/airtime", "/api/data"]
        assert router.gateway_for("airtime") is router.gateway_for("airtime")
