from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..database_model.profile import Profile
from ..dependencies.auth import get_current_profile
from ..schemas.wallet import (
    BalanceResponse,
    TransactionResponse,
    TransactionListResponse,
    FundingRequest,
    FundingResponse,
)
from ..services.wallet_service import WalletService

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("/balance", response_model=BalanceResponse)
async def get_wallet_balance(
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    """Get wallet balance of the current profile."""
    balance = await WalletService(db).get_balance(current_profile.id)
    return BalanceResponse(user_id=current_profile.id, balance=balance)


@router.get("/transactions", response_model=TransactionListResponse)
async def get_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    type: Optional[str] = Query(None, description="Filter by transaction type"),
    status: Optional[str] = Query(None, description="Filter by status"),
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    """Get transaction history, newest first."""
    wallet_service = WalletService(db)
    transactions = await wallet_service.get_transaction_history(
        current_profile.id, limit=limit, offset=offset, transaction_type=type, status=status
    )
    total = await wallet_service.count_transactions(current_profile.id, transaction_type=type, status=status)

    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        limit=limit,
        offset=offset
    )


@router.get("/transactions/{reference}", response_model=TransactionResponse)
async def get_transaction(
    reference: str,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    transaction = await WalletService(db).get_transaction_by_reference(reference, user_id=current_profile.id)
    return TransactionResponse.model_validate(transaction)


@router.post("/fund", response_model=FundingResponse, status_code=201)
async def fund_wallet(
    funding_data: FundingRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db)
):
    """Initiate wallet funding.

    The wallet is credited when the payment provider confirms the payment
    through the webhook.
    """
    transaction = await WalletService(db).initiate_funding(
        user_id=current_profile.id,
        amount=funding_data.amount,
        provider_reference=funding_data.provider_reference,
        payment_method=funding_data.payment_method
    )

    return FundingResponse(
        reference=transaction.reference,
        amount=transaction.amount,
        payment_method=funding_data.payment_method,
        status=transaction.status,
        message="Funding initiated. Your wallet will be credited once payment is confirmed."
    )
