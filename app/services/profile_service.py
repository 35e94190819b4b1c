import logging
import secrets
import string
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..database_model.profile import Profile
from ..core.errors import NotFoundError, ValidationError, InvalidReferralCodeError, PinNotSetError
from ..core.security import hash_pin, verify_pin

logger = logging.getLogger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8


def generate_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


class ProfileService:
    """Service for profiles and transaction PINs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: int) -> Profile:
        result = await self.db.execute(select(Profile).where(Profile.id == user_id))
        profile = result.scalar_one_or_none()
        if not profile:
            raise NotFoundError("Profile not found")
        return profile

    async def get_by_email(self, email: str) -> Optional[Profile]:
        result = await self.db.execute(select(Profile).where(Profile.email == email))
        return result.scalar_one_or_none()

    async def get_by_referral_code(self, code: str) -> Optional[Profile]:
        result = await self.db.execute(
            select(Profile).where(Profile.referral_code == code.strip().upper())
        )
        return result.scalar_one_or_none()

    async def _unique_referral_code(self) -> str:
        while True:
            code = generate_referral_code()
            if not await self.get_by_referral_code(code):
                return code

    async def create_profile(
        self,
        email: str,
        name: str,
        phone_number: Optional[str] = None,
        referral_code: Optional[str] = None
    ) -> Profile:
        """Create a profile, linking it to the owner of ``referral_code``.

        Raises:
            InvalidReferralCodeError: If the referral code is unknown
            ValidationError: If the email is already registered
        """
        referrer = None
        if referral_code:
            referrer = await self.get_by_referral_code(referral_code)
            if not referrer:
                raise InvalidReferralCodeError()

        if await self.get_by_email(email):
            raise ValidationError("Email already registered")

        profile = Profile(
            email=email,
            name=name,
            phone_number=phone_number,
            wallet_balance=0.0,
            referral_code=await self._unique_referral_code(),
            referred_by=referrer.id if referrer else None,
        )
        self.db.add(profile)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError("Email already registered")
        await self.db.refresh(profile)

        if referrer:
            logger.info(f"Profile {profile.id} created, referred by {referrer.id}")
        else:
            logger.info(f"Profile {profile.id} created")
        return profile

    async def set_pin(self, user_id: int, pin: str) -> Profile:
        """Set or replace the 4-digit transaction PIN."""
        if not pin or len(pin) != 4 or not pin.isdigit():
            raise ValidationError("PIN must be exactly 4 digits")

        profile = await self.get_profile(user_id)
        profile.pin_hash, profile.pin_salt = hash_pin(pin)
        await self.db.commit()
        await self.db.refresh(profile)

        logger.info(f"Transaction PIN set for profile {user_id}")
        return profile

    def verify_pin(self, profile: Profile, pin: str) -> bool:
        """Check ``pin`` against the profile's PIN.

        Raises:
            PinNotSetError: If the profile has no PIN yet
        """
        if not profile.has_pin:
            raise PinNotSetError()
        return verify_pin(pin or "", profile.pin_hash, profile.pin_salt)
