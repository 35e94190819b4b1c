import logging
from enum import Enum
from typing import Dict, Literal, Mapping

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ServiceStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"
    COMING_SOON = "coming_soon"


# (value, description) for every admin setting the core reads
DEFAULT_SETTINGS: Dict[str, tuple] = {
    "service_airtime_status": ("active", "Status for airtime service: active, disabled, or coming_soon"),
    "service_data_status": ("active", "Status for data service: active, disabled, or coming_soon"),
    "service_electricity_status": ("active", "Status for electricity service: active, disabled, or coming_soon"),
    "service_tv_status": ("coming_soon", "Status for TV service: active, disabled, or coming_soon"),
    "service_waec_status": ("coming_soon", "Status for WAEC service: active, disabled, or coming_soon"),
    "service_voucher_status": ("coming_soon", "Status for voucher redemption service: active, disabled, or coming_soon"),
    "service_support_status": ("active", "Status for support ticket service: active, disabled, or coming_soon"),
    "service_refer_status": ("active", "Status for refer & earn service: active, disabled, or coming_soon"),
    "service_store_status": ("active", "Status for e-commerce store: active, disabled, or coming_soon"),
    "funding_charge_enabled": ("false", "Enable or disable charges for wallet funding"),
    "funding_charge_type": ("percentage", "Type of charge for wallet funding (percentage or fixed)"),
    "funding_charge_value": ("1.5", "Value of the charge (percentage or fixed amount)"),
    "funding_charge_min_deposit": ("1000", "Minimum deposit amount for charges to apply (0 for no minimum)"),
    "funding_charge_max_deposit": ("0", "Maximum deposit amount for charges to apply (0 for no maximum)"),
    "funding_charge_display_text": (
        "A service charge applies to wallet funding transactions.",
        "Custom text to display to users about funding charges",
    ),
    "referral_reward_enabled": ("true", "Enable or disable the reward for referrals"),
    "referral_reward_count": ("5", "Number of referrals required to earn the reward"),
    "referral_reward_type": ("data_bundle", "Type of reward for referrals (data_bundle, airtime, wallet_credit)"),
    "referral_reward_data_size": ("1GB", "Size of the data reward (e.g., 1GB, 2GB)"),
    "referral_reward_data_value": ("500", "Ledger value of the data reward (in local currency)"),
    "referral_reward_airtime_amount": ("1000", "Amount of airtime to reward (in local currency)"),
    "referral_reward_cash_amount": ("1000", "Amount of cash to reward (in local currency)"),
    "referral_qualifying_event": ("first_funding", "Event that makes a referral count (signup or first_funding)"),
}

SERVICE_KEY_PREFIX = "service_"
SERVICE_KEY_SUFFIX = "_status"


def service_key(service: str) -> str:
    return f"{SERVICE_KEY_PREFIX}{service}{SERVICE_KEY_SUFFIX}"


class FundingChargeRule(BaseModel):
    """Charge netted out of a wallet funding before it is credited."""
    enabled: bool = False
    charge_type: Literal["percentage", "fixed"] = "percentage"
    value: float = Field(1.5, ge=0)
    min_deposit: float = Field(1000.0, ge=0)
    max_deposit: float = Field(0.0, ge=0)
    display_text: str = DEFAULT_SETTINGS["funding_charge_display_text"][0]

    def applies_to(self, amount: float) -> bool:
        if not self.enabled:
            return False
        if self.min_deposit and amount < self.min_deposit:
            return False
        if self.max_deposit and amount > self.max_deposit:
            return False
        return True

    def compute(self, amount: float) -> float:
        """Charge for a deposit of ``amount``; zero when the rule does not apply."""
        if not self.applies_to(amount):
            return 0.0
        if self.charge_type == "fixed":
            return round(self.value, 2)
        return round(amount * self.value / 100, 2)


class ReferralRewardRule(BaseModel):
    enabled: bool = True
    count: int = 5
    reward_type: Literal["data_bundle", "airtime", "wallet_credit"] = "data_bundle"
    data_size: str = "1GB"
    data_value: float = 500.0
    airtime_amount: float = 1000.0
    cash_amount: float = 1000.0
    qualifying_event: Literal["signup", "first_funding"] = "first_funding"

    @property
    def reward_amount(self) -> float:
        """Ledger value of one reward."""
        if self.reward_type == "wallet_credit":
            return self.cash_amount
        if self.reward_type == "airtime":
            return self.airtime_amount
        return self.data_value


class ServiceConfigSnapshot(BaseModel):
    """Admin settings read once and passed explicitly to an operation."""
    services: Dict[str, ServiceStatus] = Field(default_factory=dict)
    funding_charge: FundingChargeRule = Field(default_factory=FundingChargeRule)
    referral_reward: ReferralRewardRule = Field(default_factory=ReferralRewardRule)

    def service_status(self, service: str) -> ServiceStatus:
        # Unknown services default to active
        return self.services.get(service, ServiceStatus.ACTIVE)

    def is_active(self, service: str) -> bool:
        return self.service_status(service) == ServiceStatus.ACTIVE

    @classmethod
    def from_settings(cls, values: Mapping[str, str]) -> "ServiceConfigSnapshot":
        """Build a snapshot from raw ``admin_settings`` key/value pairs."""
        merged = {key: default for key, (default, _) in DEFAULT_SETTINGS.items()}
        merged.update(values)

        services = {}
        for key, value in merged.items():
            if key.startswith(SERVICE_KEY_PREFIX) and key.endswith(SERVICE_KEY_SUFFIX):
                name = key[len(SERVICE_KEY_PREFIX):-len(SERVICE_KEY_SUFFIX)]
                try:
                    services[name] = ServiceStatus(value)
                except ValueError:
                    logger.warning(f"Invalid status '{value}' for {key}, treating service as disabled")
                    services[name] = ServiceStatus.DISABLED

        funding_charge = FundingChargeRule(
            enabled=_as_bool(merged["funding_charge_enabled"]),
            charge_type=_as_choice(merged, "funding_charge_type", ("percentage", "fixed")),
            value=_as_float(merged, "funding_charge_value"),
            min_deposit=_as_float(merged, "funding_charge_min_deposit"),
            max_deposit=_as_float(merged, "funding_charge_max_deposit"),
            display_text=merged["funding_charge_display_text"],
        )

        referral_reward = ReferralRewardRule(
            enabled=_as_bool(merged["referral_reward_enabled"]),
            count=int(_as_float(merged, "referral_reward_count")),
            reward_type=_as_choice(merged, "referral_reward_type", ("data_bundle", "airtime", "wallet_credit")),
            data_size=merged["referral_reward_data_size"],
            data_value=_as_float(merged, "referral_reward_data_value"),
            airtime_amount=_as_float(merged, "referral_reward_airtime_amount"),
            cash_amount=_as_float(merged, "referral_reward_cash_amount"),
            qualifying_event=_as_choice(merged, "referral_qualifying_event", ("signup", "first_funding")),
        )

        return cls(services=services, funding_charge=funding_charge, referral_reward=referral_reward)


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() == "true"


def _as_float(values: Mapping[str, str], key: str) -> float:
    try:
        number = float(values[key])
        if number < 0:
            raise ValueError(number)
        return number
    except (TypeError, ValueError):
        default = DEFAULT_SETTINGS[key][0]
        logger.warning(f"Invalid numeric value '{values[key]}' for {key}, using default {default}")
        return float(default)


def _as_choice(values: Mapping[str, str], key: str, choices: tuple) -> str:
    value = str(values[key]).strip()
    if value not in choices:
        default = DEFAULT_SETTINGS[key][0]
        logger.warning(f"Invalid value '{value}' for {key}, using default {default}")
        return default
    return value
