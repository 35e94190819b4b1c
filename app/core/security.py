import base64
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from jose import jwt

from .config import settings

PIN_HASH_ITERATIONS = 100000


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT for a profile.

    Args:
        data: Claims to encode; ``sub`` holds the profile id
        expires_delta: Lifetime override

    Returns:
        str: Encoded token
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode a JWT. Raises ``jose.JWTError`` when invalid or expired."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])


def hash_pin(pin: str, salt: Optional[bytes] = None) -> Tuple[str, str]:
    """Hash a transaction PIN with PBKDF2-SHA256.

    Returns:
        tuple: (pin_hash, salt_base64)
    """
    if salt is None:
        salt = secrets.token_bytes(32)

    pin_hash = hashlib.pbkdf2_hmac(
        'sha256',
        pin.encode('utf-8'),
        salt,
        PIN_HASH_ITERATIONS
    )

    return (
        base64.urlsafe_b64encode(pin_hash).decode('utf-8'),
        base64.urlsafe_b64encode(salt).decode('utf-8')
    )


def verify_pin(pin: str, pin_hash: str, salt: str) -> bool:
    """Check a PIN against its stored hash and salt."""
    try:
        salt_bytes = base64.urlsafe_b64decode(salt.encode('utf-8'))
    except (ValueError, TypeError):
        return False
    expected_hash, _ = hash_pin(pin, salt_bytes)
    return secrets.compare_digest(expected_hash, pin_hash)
