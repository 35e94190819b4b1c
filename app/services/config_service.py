import logging
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..database_model.admin_setting import AdminSetting, AdminLog
from ..schemas.service_config import (
    DEFAULT_SETTINGS,
    ServiceConfigSnapshot,
    ServiceStatus,
    service_key,
)
from ..core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

BOOLEAN_KEYS = {"funding_charge_enabled", "referral_reward_enabled"}

NUMERIC_KEYS = {
    "funding_charge_value",
    "funding_charge_min_deposit",
    "funding_charge_max_deposit",
    "referral_reward_count",
    "referral_reward_data_value",
    "referral_reward_airtime_amount",
    "referral_reward_cash_amount",
}

CHOICE_KEYS = {
    "funding_charge_type": ("percentage", "fixed"),
    "referral_reward_type": ("data_bundle", "airtime", "wallet_credit"),
    "referral_qualifying_event": ("signup", "first_funding"),
}


class ConfigService:
    """Service for admin-managed runtime settings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all_settings(self) -> List[AdminSetting]:
        result = await self.db.execute(select(AdminSetting).order_by(AdminSetting.key))
        return list(result.scalars().all())

    async def get_snapshot(self) -> ServiceConfigSnapshot:
        """Read all settings once into an immutable snapshot."""
        settings = await self.get_all_settings()
        return ServiceConfigSnapshot.from_settings({s.key: s.value for s in settings})

    async def get_setting(self, key: str) -> AdminSetting:
        """Get a single setting by key."""
        result = await self.db.execute(select(AdminSetting).where(AdminSetting.key == key))
        setting = result.scalar_one_or_none()
        if not setting:
            raise NotFoundError(f"Setting not found: {key}")
        return setting

    def validate_value(self, key: str, value: str) -> str:
        """Normalize a setting value, raising ValidationError when it is not acceptable."""
        value = str(value).strip()

        if key.startswith("service_") and key.endswith("_status"):
            try:
                return ServiceStatus(value).value
            except ValueError:
                raise ValidationError(
                    f"Invalid status for {key}. Must be one of: "
                    f"{', '.join(s.value for s in ServiceStatus)}"
                )

        if key in BOOLEAN_KEYS:
            if value.lower() not in ("true", "false"):
                raise ValidationError(f"{key} must be 'true' or 'false'")
            return value.lower()

        if key in NUMERIC_KEYS:
            try:
                number = float(value)
            except ValueError:
                raise ValidationError(f"{key} must be a number")
            if number < 0:
                raise ValidationError(f"{key} cannot be negative")
            if key == "referral_reward_count" and number != int(number):
                raise ValidationError(f"{key} must be a whole number")
            return value

        if key in CHOICE_KEYS and value not in CHOICE_KEYS[key]:
            raise ValidationError(f"{key} must be one of: {', '.join(CHOICE_KEYS[key])}")

        return value

    async def update_setting(
        self,
        key: str,
        value: str,
        description: Optional[str] = None,
        admin_id: Optional[int] = None
    ) -> AdminSetting:
        """Create or update a setting."""
        value = self.validate_value(key, value)

        result = await self.db.execute(select(AdminSetting).where(AdminSetting.key == key))
        setting = result.scalar_one_or_none()
        old_value = setting.value if setting else None

        if setting:
            setting.value = value
            if description is not None:
                setting.description = description
        else:
            if description is None and key in DEFAULT_SETTINGS:
                description = DEFAULT_SETTINGS[key][1]
            setting = AdminSetting(key=key, value=value, description=description)
            self.db.add(setting)

        if admin_id is not None:
            self.db.add(AdminLog(
                admin_id=admin_id,
                action="update_setting",
                details={"key": key, "old_value": old_value, "new_value": value}
            ))

        await self.db.commit()
        await self.db.refresh(setting)

        logger.info(f"Setting {key} changed from {old_value!r} to {value!r}")
        return setting

    async def update_service_status(
        self,
        service: str,
        status: str,
        admin_id: Optional[int] = None
    ) -> AdminSetting:
        """Switch a service between active, disabled and coming_soon."""
        return await self.update_setting(service_key(service), status, admin_id=admin_id)

    async def ensure_defaults(self) -> Dict[str, str]:
        """Insert any default setting that is missing. Returns the keys created."""
        result = await self.db.execute(select(AdminSetting.key))
        existing = set(result.scalars().all())

        created = {}
        for key, (value, description) in DEFAULT_SETTINGS.items():
            if key not in existing:
                self.db.add(AdminSetting(key=key, value=value, description=description))
                created[key] = value

        if created:
            await self.db.commit()
            logger.info(f"Created {len(created)} default admin settings")
        return created
