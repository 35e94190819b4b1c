import pytest
import pytest_asyncio
from sqlalchemy import update

from app.core.config import settings
from app.core.errors import (
    NotFoundError,
    InsufficientFundsError,
    ValidationError,
    ServiceUnavailableError,
    AdapterFailureError,
    AdapterTimeoutError,
    DuplicateFundingReferenceError,
)
from app.database_model.profile import Profile
from app.database_model.transaction import Transaction
from app.payment_model.abstract_gateway import GatewayErrorKind, GatewayResult
from app.schemas.service_config import ServiceConfigSnapshot
from app.services.wallet_service import WalletService

from conftest import FakeGateway, failed_result, add_transaction


@pytest.mark.unit
@pytest.mark.wallet
class TestPurchaseService:
    """Test suite for WalletService.purchase_service."""

    @pytest_asyncio.fixture
    async def wallet_service(self, db_session, fake_gateway):
        return WalletService(db_session, fake_gateway)

    async def test_insufficient_funds_records_nothing(self, wallet_service, test_profile, fake_gateway, airtime_payload):
        """A purchase above the balance is refused before any provider call."""
        user_id = test_profile.id

        with pytest.raises(InsufficientFundsError, match="Insufficient wallet balance"):
            await wallet_service.purchase_service(user_id, "airtime", 1500.0, airtime_payload)

        assert await wallet_service.get_balance(user_id) == 1000.0
        assert await wallet_service.get_transaction_history(user_id) == []
        assert fake_gateway.requests == []

    async def test_successful_purchase_debits_once(self, wallet_service, test_profile, fake_gateway, airtime_payload):
        """Provider success flips the row to success and debits exactly once."""
        user_id = test_profile.id

        transaction = await wallet_service.purchase_service(
            user_id, "airtime", 500.0, airtime_payload, reference="R1"
        )

        assert transaction.status == "success"
        assert transaction.reference == "R1"
        assert transaction.amount == 500.0
        assert transaction.provider_reference == "PROV-R1"
        assert transaction.details["network"] == "MTN"
        assert await wallet_service.get_balance(user_id) == 500.0

        successes = await wallet_service.get_transaction_history(user_id, status="success")
        assert [t.reference for t in successes] == ["R1"]

        assert len(fake_gateway.requests) == 1
        assert fake_gateway.requests[0].reference == "R1"
        assert fake_gateway.requests[0].amount == 500.0

    async def test_generated_reference(self, wallet_service, test_profile, airtime_payload):
        transaction = await wallet_service.purchase_service(test_profile.id, "airtime", 100.0, airtime_payload)

        assert transaction.reference.startswith("TRX-")
        assert len(transaction.reference) == 16

    @pytest.mark.parametrize("kind,status_code", [
        (GatewayErrorKind.NETWORK, 502),
        (GatewayErrorKind.UPSTREAM_REJECTED, 400),
        (GatewayErrorKind.UPSTREAM_UNAVAILABLE, 503),
    ])
    async def test_definite_failure_marks_failed(
        self, wallet_service, test_profile, fake_gateway, airtime_payload, kind, status_code
    ):
        """A definite provider failure fails the row and leaves the balance alone."""
        user_id = test_profile.id
        fake_gateway.queue(failed_result(kind, "Provider said no"))

        with pytest.raises(AdapterFailureError) as exc_info:
            await wallet_service.purchase_service(user_id, "airtime", 500.0, airtime_payload, reference="R2")

        assert exc_info.value.kind == kind.value
        assert exc_info.value.status_code == status_code
        assert exc_info.value.reference == "R2"

        transaction = await wallet_service.get_transaction_by_reference("R2")
        assert transaction.status == "failed"
        assert transaction.failure_reason == "Provider said no"
        assert await wallet_service.get_balance(user_id) == 1000.0

    async def test_timeout_leaves_pending(self, wallet_service, test_profile, fake_gateway, airtime_payload):
        """An unknown outcome keeps the row pending without touching the balance."""
        user_id = test_profile.id
        fake_gateway.queue(failed_result(GatewayErrorKind.TIMEOUT, "Still processing"))

        with pytest.raises(AdapterTimeoutError) as exc_info:
            await wallet_service.purchase_service(user_id, "airtime", 500.0, airtime_payload, reference="R3")

        assert exc_info.value.reference == "R3"
        assert exc_info.value.status_code == 504

        transaction = await wallet_service.get_transaction_by_reference("R3")
        assert transaction.status == "pending"
        assert await wallet_service.get_balance(user_id) == 1000.0

    async def test_expired_bound_is_unknown_outcome(self, db_session, test_profile, airtime_payload, monkeypatch):
        """A provider slower than the configured bound leaves the row pending."""
        user_id = test_profile.id
        monkeypatch.setattr(settings, "gateway_timeout_seconds", 0.05)
        wallet_service = WalletService(db_session, FakeGateway(delay=1.0))

        with pytest.raises(AdapterTimeoutError):
            await wallet_service.purchase_service(user_id, "airtime", 500.0, airtime_payload, reference="R4")

        transaction = await wallet_service.get_transaction_by_reference("R4")
        assert transaction.status == "pending"
        assert await wallet_service.get_balance(user_id) == 1000.0

    async def test_unexpected_gateway_error_is_unknown_outcome(self, db_session, test_profile, airtime_payload):
        user_id = test_profile.id
        wallet_service = WalletService(db_session, FakeGateway(results=[RuntimeError("socket closed")]))

        with pytest.raises(AdapterTimeoutError):
            await wallet_service.purchase_service(user_id, "airtime", 500.0, airtime_payload, reference="R5")

        transaction = await wallet_service.get_transaction_by_reference("R5")
        assert transaction.status == "pending"

    async def test_balance_spent_during_provider_call(self, db_session, session_factory, test_profile, airtime_payload):
        """If the balance no longer covers the purchase after delivery, nothing is debited."""
        user_id = test_profile.id

        async def drain_wallet(request):
            async with session_factory() as other_session:
                await other_session.execute(
                    update(Profile).where(Profile.id == user_id).values(wallet_balance=100.0)
                )
                await other_session.commit()

        wallet_service = WalletService(db_session, FakeGateway(on_submit=drain_wallet))

        with pytest.raises(AdapterTimeoutError):
            await wallet_service.purchase_service(user_id, "airtime", 500.0, airtime_payload, reference="R6")

        transaction = await wallet_service.get_transaction_by_reference("R6")
        assert transaction.status == "pending"
        assert "manual reconciliation" in transaction.failure_reason
        assert transaction.provider_reference == "PROV-R6"
        assert await wallet_service.get_balance(user_id) == 100.0

    async def test_resolved_during_provider_call(self, db_session, session_factory, test_profile, airtime_payload):
        """A row failed by an admin while the provider worked is not reported as a success."""
        user_id = test_profile.id

        async def fail_by_admin(request):
            async with session_factory() as other_session:
                await other_session.execute(
                    update(Transaction)
                    .where(Transaction.reference == request.reference)
                    .values(status="failed", failure_reason="Marked failed by admin")
                )
                await other_session.commit()

        wallet_service = WalletService(db_session, FakeGateway(on_submit=fail_by_admin))

        with pytest.raises(AdapterTimeoutError) as exc_info:
            await wallet_service.purchase_service(user_id, "airtime", 500.0, airtime_payload, reference="R-ADMIN")

        assert "failed" in exc_info.value.detail
        transaction = await wallet_service.get_transaction_by_reference("R-ADMIN")
        assert transaction.status == "failed"
        assert await wallet_service.get_balance(user_id) == 1000.0

    async def test_balance_never_negative(self, wallet_service, test_profile, airtime_payload):
        """A sequence of purchases stops at the balance."""
        user_id = test_profile.id

        await wallet_service.purchase_service(user_id, "airtime", 400.0, airtime_payload)
        await wallet_service.purchase_service(user_id, "airtime", 400.0, airtime_payload)
        with pytest.raises(InsufficientFundsError):
            await wallet_service.purchase_service(user_id, "airtime", 400.0, airtime_payload)

        assert await wallet_service.get_balance(user_id) == 200.0
        successes = await wallet_service.get_transaction_history(user_id, status="success")
        assert sum(t.amount for t in successes) == 800.0

    async def test_duplicate_reference_rejected(self, wallet_service, test_profile, fake_gateway, airtime_payload):
        user_id = test_profile.id
        await wallet_service.purchase_service(user_id, "airtime", 100.0, airtime_payload, reference="R7")

        with pytest.raises(ValidationError, match="already exists"):
            await wallet_service.purchase_service(user_id, "airtime", 100.0, airtime_payload, reference="R7")

        assert len(fake_gateway.requests) == 1
        assert await wallet_service.get_balance(user_id) == 900.0

    async def test_disabled_service(self, wallet_service, test_profile, fake_gateway, airtime_payload):
        config = ServiceConfigSnapshot.from_settings({"service_airtime_status": "disabled"})

        with pytest.raises(ServiceUnavailableError, match="currently unavailable"):
            await wallet_service.purchase_service(test_profile.id, "airtime", 100.0, airtime_payload, config=config)

        assert fake_gateway.requests == []

    async def test_coming_soon_service(self, wallet_service, test_profile):
        """WAEC is coming soon by default."""
        with pytest.raises(ServiceUnavailableError, match="coming soon"):
            await wallet_service.purchase_service(test_profile.id, "waec", 100.0, {"quantity": 1})

    async def test_invalid_details_rejected(self, wallet_service, test_profile, fake_gateway):
        user_id = test_profile.id

        with pytest.raises(ValidationError, match="Invalid airtime details"):
            await wallet_service.purchase_service(user_id, "airtime", 100.0, {"network": "XYZ", "phone": "08031234567"})

        assert await wallet_service.get_transaction_history(user_id) == []
        assert fake_gateway.requests == []

    async def test_amount_limits(self, wallet_service, test_profile, airtime_payload):
        with pytest.raises(ValidationError, match="greater than zero"):
            await wallet_service.purchase_service(test_profile.id, "airtime", 0, airtime_payload)
        with pytest.raises(ValidationError, match="Minimum purchase amount"):
            await wallet_service.purchase_service(test_profile.id, "airtime", 10.0, airtime_payload)

    async def test_unsupported_type(self, wallet_service, test_profile):
        with pytest.raises(ValidationError, match="Unsupported service type"):
            await wallet_service.purchase_service(test_profile.id, "wallet_funding", 100.0, {})

    async def test_electricity_token_kept(self, wallet_service, test_profile, fake_gateway):
        fake_gateway.queue(GatewayResult.ok(reference="E1", raw={"token": "1234-5678-9012"}))

        transaction = await wallet_service.purchase_service(
            test_profile.id, "electricity", 300.0, {"disco": "IKEDC", "meter_number": "45011223344"}
        )

        assert transaction.details["token"] == "1234-5678-9012"
        assert transaction.details["meter_type"] == "prepaid"


@pytest.mark.unit
@pytest.mark.wallet
class TestFunding:
    """Test suite for wallet funding."""

    @pytest_asyncio.fixture
    async def wallet_service(self, db_session, fake_gateway):
        return WalletService(db_session, fake_gateway)

    async def test_fund_wallet_credits(self, wallet_service, test_profile):
        user_id = test_profile.id

        transaction = await wallet_service.fund_wallet(user_id, 2000.0, "P1")

        assert transaction.status == "success"
        assert transaction.type == "wallet_funding"
        assert transaction.amount == 2000.0
        assert transaction.details["gross_amount"] == 2000.0
        assert transaction.details["charge"] == 0.0
        assert await wallet_service.get_balance(user_id) == 3000.0

    async def test_same_reference_credits_once(self, wallet_service, test_profile):
        """Funding twice with the same provider reference credits once."""
        user_id = test_profile.id

        await wallet_service.fund_wallet(user_id, 2000.0, "P1")
        with pytest.raises(DuplicateFundingReferenceError):
            await wallet_service.fund_wallet(user_id, 2000.0, "P1")

        assert await wallet_service.get_balance(user_id) == 3000.0
        assert await wallet_service.count_transactions(user_id, transaction_type="wallet_funding") == 1

    async def test_percentage_charge(self, wallet_service, test_profile):
        user_id = test_profile.id
        config = ServiceConfigSnapshot.from_settings({
            "funding_charge_enabled": "true",
            "funding_charge_type": "percentage",
            "funding_charge_value": "1.5",
            "funding_charge_min_deposit": "1000",
        })

        transaction = await wallet_service.fund_wallet(user_id, 2000.0, "P2", config=config)

        assert transaction.amount == 1970.0
        assert transaction.details["gross_amount"] == 2000.0
        assert transaction.details["charge"] == 30.0
        assert await wallet_service.get_balance(user_id) == 2970.0

    async def test_charge_skipped_below_min_deposit(self, wallet_service, test_profile):
        config = ServiceConfigSnapshot.from_settings({
            "funding_charge_enabled": "true",
            "funding_charge_min_deposit": "1000",
        })

        transaction = await wallet_service.fund_wallet(test_profile.id, 500.0, "P3", config=config)

        assert transaction.amount == 500.0
        assert transaction.details["charge"] == 0.0

    async def test_charge_covering_deposit_rejected(self, wallet_service, test_profile):
        user_id = test_profile.id
        config = ServiceConfigSnapshot.from_settings({
            "funding_charge_enabled": "true",
            "funding_charge_type": "fixed",
            "funding_charge_value": "100",
            "funding_charge_min_deposit": "0",
        })

        with pytest.raises(ValidationError, match="service charge"):
            await wallet_service.fund_wallet(user_id, 100.0, "P4", config=config)

        assert await wallet_service.get_balance(user_id) == 1000.0

    async def test_pending_funding_confirmed(self, wallet_service, test_profile):
        user_id = test_profile.id

        pending = await wallet_service.initiate_funding(user_id, 5000.0, "P5", "card")
        assert pending.status == "pending"
        assert await wallet_service.get_balance(user_id) == 1000.0

        confirmed = await wallet_service.fund_wallet(user_id, 5000.0, "P5", "card")

        assert confirmed.id == pending.id
        assert confirmed.status == "success"
        assert await wallet_service.get_balance(user_id) == 6000.0

        with pytest.raises(DuplicateFundingReferenceError):
            await wallet_service.fund_wallet(user_id, 5000.0, "P5", "card")
        assert await wallet_service.get_balance(user_id) == 6000.0

    async def test_initiate_duplicate_reference(self, wallet_service, test_profile):
        user_id = test_profile.id
        await wallet_service.initiate_funding(user_id, 500.0, "P6")

        with pytest.raises(DuplicateFundingReferenceError):
            await wallet_service.initiate_funding(user_id, 500.0, "P6")

    async def test_initiate_below_minimum(self, wallet_service, test_profile):
        with pytest.raises(ValidationError, match="Minimum funding amount"):
            await wallet_service.initiate_funding(test_profile.id, 50.0, "P7")

    async def test_fail_funding(self, wallet_service, test_profile):
        user_id = test_profile.id
        await wallet_service.initiate_funding(user_id, 500.0, "P8")

        failed = await wallet_service.fail_funding("P8", "Card declined")

        assert failed.status == "failed"
        assert failed.failure_reason == "Card declined"
        assert await wallet_service.get_balance(user_id) == 1000.0

        with pytest.raises(ValidationError, match="already marked failed"):
            await wallet_service.fund_wallet(user_id, 500.0, "P8")

    async def test_fail_unknown_funding(self, wallet_service):
        with pytest.raises(NotFoundError):
            await wallet_service.fail_funding("NOPE", "Card declined")


@pytest.mark.unit
@pytest.mark.wallet
class TestLedger:
    """Test suite for balance primitives and history."""

    @pytest_asyncio.fixture
    async def wallet_service(self, db_session, fake_gateway):
        return WalletService(db_session, fake_gateway)

    async def test_debit_and_credit(self, wallet_service, db_session, test_profile):
        user_id = test_profile.id

        assert await wallet_service.debit_wallet(user_id, 300.0) == 700.0
        assert await wallet_service.credit_wallet(user_id, 50.0) == 750.0
        await db_session.commit()

        assert await wallet_service.get_balance(user_id) == 750.0

    async def test_debit_insufficient(self, wallet_service, test_profile):
        user_id = test_profile.id

        with pytest.raises(InsufficientFundsError):
            await wallet_service.debit_wallet(user_id, 1000.01)

        assert await wallet_service.get_balance(user_id) == 1000.0

    async def test_unknown_profile(self, wallet_service):
        with pytest.raises(NotFoundError):
            await wallet_service.get_balance(99999)
        with pytest.raises(NotFoundError):
            await wallet_service.debit_wallet(99999, 10.0)
        with pytest.raises(NotFoundError):
            await wallet_service.credit_wallet(99999, 10.0)

    async def test_history_filters_and_order(self, wallet_service, db_session, test_profile):
        user_id = test_profile.id
        await add_transaction(db_session, user_id=user_id, type="airtime", amount=100.0, status="success", reference="H1")
        await add_transaction(db_session, user_id=user_id, type="data", amount=200.0, status="failed", reference="H2")
        await add_transaction(db_session, user_id=user_id, type="airtime", amount=300.0, status="pending", reference="H3")

        history = await wallet_service.get_transaction_history(user_id)
        assert [t.reference for t in history] == ["H3", "H2", "H1"]

        airtime = await wallet_service.get_transaction_history(user_id, transaction_type="airtime")
        assert [t.reference for t in airtime] == ["H3", "H1"]

        failed = await wallet_service.get_transaction_history(user_id, status="failed")
        assert [t.reference for t in failed] == ["H2"]

        page = await wallet_service.get_transaction_history(user_id, limit=1, offset=1)
        assert [t.reference for t in page] == ["H2"]

        assert await wallet_service.count_transactions(user_id) == 3

    async def test_transaction_scoped_to_owner(self, wallet_service, db_session, test_profile, make_profile):
        other = await make_profile()
        await add_transaction(db_session, user_id=other.id, type="airtime", amount=100.0, status="success", reference="O1")

        with pytest.raises(NotFoundError):
            await wallet_service.get_transaction_by_reference("O1", user_id=test_profile.id)

        transaction = await wallet_service.get_transaction_by_reference("O1", user_id=other.id)
        assert transaction.amount == 100.0
