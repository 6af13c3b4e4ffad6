"""JWT creation/verification. The token identifies the ledger owner and their entitlement."""

from datetime import datetime, timezone, timedelta
from typing import Any

from jose import jwt

from fitledger.config import settings


def _get_jwt_signing_key_and_algorithm() -> tuple[str, str]:
    """Return (key, algorithm) for signing access tokens."""
    if settings.use_rs256:
        return settings.jwt_private_key.strip(), "RS256"
    return settings.secret_key, settings.jwt_algorithm


def create_access_token(user_id: str, *, premium: bool = False) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": str(user_id), "premium": premium, "exp": expire}
    key, algorithm = _get_jwt_signing_key_and_algorithm()
    result = jwt.encode(payload, key, algorithm=algorithm)
    return result if isinstance(result, str) else result.decode("utf-8")


def _get_jwt_verification_key_and_algorithms() -> tuple[str, list[str]]:
    """Return (key, algorithms) for verifying access tokens."""
    if settings.use_rs256:
        return settings.jwt_public_key.strip(), ["RS256"]
    return settings.secret_key, [settings.jwt_algorithm]


def decode_token(token: str) -> dict[str, Any]:
    key, algorithms = _get_jwt_verification_key_and_algorithms()
    return jwt.decode(token, key, algorithms=algorithms)
