"""
Security Utilities

Password and join-code hashing (bcrypt) plus JWT creation and validation
(python-jose).

Join codes are treated exactly like passwords: only the bcrypt hash is
stored on the school and comparisons go through ``verify_code``.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from app.core.config import settings

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
# bcrypt only reads the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"
TOKEN_TYPE_SCHOOL = "school"


def fits_bcrypt(secret: str) -> bool:
    """Check that a secret is short enough to be hashed without truncation."""
    return len(secret.encode("utf-8")) <= BCRYPT_MAX_BYTES


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash with embedded salt

    Raises:
        ValueError: If password is empty or longer than BCRYPT_MAX_BYTES in UTF-8
    """
    if not password:
        raise ValueError("Password cannot be empty")
    if not fits_bcrypt(password):
        raise ValueError(f"Password cannot be longer than {BCRYPT_MAX_BYTES} bytes")

    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify a password against a bcrypt hash.

    Returns False for empty or overlong input and for a malformed hash
    instead of raising.
    """
    if not password or not password_hash or not fits_bcrypt(password):
        return False

    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Malformed password hash encountered during verification")
        return False


def hash_code(code: str) -> str:
    """Hash a school join code for storage."""
    return hash_password(code)


def verify_code(code: str, code_hash: str | None) -> bool:
    """Check a plaintext join code against the stored hash."""
    return verify_password(code, code_hash)


def _encode(claims: dict[str, Any], expires_delta: timedelta) -> str:
    now = datetime.now(UTC)
    to_encode = {**claims, "iat": now, "exp": now + expires_delta}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    subject: str,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token for an authenticated user.

    Args:
        subject: User ID placed in the ``sub`` claim
        additional_claims: Extra claims (email, role, name)
        expires_delta: Custom lifetime; defaults to settings

    Returns:
        Encoded JWT string
    """
    claims = {**(additional_claims or {}), "sub": subject, "type": TOKEN_TYPE_ACCESS}
    return _encode(
        claims,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(subject: str) -> str:
    """Create a long-lived refresh token carrying only the subject."""
    return _encode(
        {"sub": subject, "type": TOKEN_TYPE_REFRESH},
        timedelta(days=settings.refresh_token_expire_days),
    )


def create_school_token(payload: dict[str, Any]) -> str:
    """
    Sign a school-scoped membership token.

    The payload must already contain ``sub`` (the membership id) and the
    school claims assembled by the caller.
    """
    if "sub" not in payload:
        raise ValueError("School token payload requires a 'sub' claim")

    claims = {**payload, "type": TOKEN_TYPE_SCHOOL}
    return _encode(claims, timedelta(minutes=settings.school_token_expire_minutes))


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT.

    Returns:
        The claims dict, or None when the signature, algorithm or expiry
        check fails.
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug(f"Token decode failed: {e}")
        return None
