from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import ValidationError

NETWORKS = ("MTN", "AIRTEL", "GLO", "9MOBILE")


class AirtimeDetails(BaseModel):
    """Airtime top-up for a phone number."""
    kind: Literal["airtime"] = "airtime"
    network: str
    phone: str = Field(..., min_length=11, max_length=14)

    @field_validator('network')
    @classmethod
    def validate_network(cls, v):
        v = v.upper()
        if v not in NETWORKS:
            raise ValueError(f'Network must be one of: {", ".join(NETWORKS)}')
        return v


class DataDetails(AirtimeDetails):
    """Data bundle for a phone number."""
    kind: Literal["data"] = "data"
    plan: str = Field(..., min_length=1)


class ElectricityDetails(BaseModel):
    kind: Literal["electricity"] = "electricity"
    disco: str = Field(..., min_length=1)
    meter_number: str = Field(..., min_length=6)
    meter_type: Literal["prepaid", "postpaid"] = "prepaid"
    token: Optional[str] = None


class WaecDetails(BaseModel):
    kind: Literal["waec"] = "waec"
    quantity: int = Field(1, ge=1, le=10)
    exam_type: str = "waec-registration"


class WalletFundingDetails(BaseModel):
    kind: Literal["wallet_funding"] = "wallet_funding"
    payment_method: str = "bank_transfer"
    gross_amount: float
    charge: float = 0.0


class ProductPurchaseDetails(BaseModel):
    kind: Literal["product_purchase"] = "product_purchase"
    order_id: int
    product_name: str
    quantity: int = 1
    payment_method: Literal["wallet", "pay_on_delivery"] = "wallet"


class ReferralRewardDetails(BaseModel):
    kind: Literal["referral_reward"] = "referral_reward"
    reward_type: Literal["data_bundle", "airtime", "wallet_credit"]
    milestone: int
    referral_count: int
    data_size: Optional[str] = None
    phone: Optional[str] = None


TransactionDetails = Annotated[
    Union[
        AirtimeDetails,
        DataDetails,
        ElectricityDetails,
        WaecDetails,
        WalletFundingDetails,
        ProductPurchaseDetails,
        ReferralRewardDetails,
    ],
    Field(discriminator="kind"),
]

_details_adapter = TypeAdapter(TransactionDetails)


def parse_details(transaction_type: str, payload: Dict[str, Any]) -> BaseModel:
    """Validate a details payload against the variant for ``transaction_type``.

    Raises:
        ValidationError: If the payload does not fit the variant
    """
    data = dict(payload or {})
    kind = data.setdefault("kind", transaction_type)
    if kind != transaction_type:
        raise ValidationError(f"Details of kind '{kind}' do not match transaction type '{transaction_type}'")

    try:
        return _details_adapter.validate_python(data)
    except PydanticValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'details'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid {transaction_type} details: {errors}")
