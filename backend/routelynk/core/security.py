from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import jwt

from routelynk.core.config import Settings


def create_access_token(settings: Settings, email: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(tz=timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode: dict[str, Any] = {"sub": email, "email": email, "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(settings: Settings, token: str) -> dict[str, Any]:
    """Decode an access token without role verification.
    Raises jwt.PyJWTError if invalid or expired and returns the payload as a dict.
    """
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])


def decode_identity_token(settings: Settings, id_token: str) -> dict[str, Any]:
    """Verify a token issued by the external identity provider.

    The provider signs with IDP_SECRET and puts the account email in ``email``.
    When IDP_AUDIENCE is configured the ``aud`` claim must match it.
    """
    options = {"require": ["exp"]}
    if settings.idp_audience:
        return jwt.decode(
            id_token,
            settings.idp_secret,
            algorithms=[settings.idp_algorithm],
            audience=settings.idp_audience,
            options=options,
        )
    return jwt.decode(
        id_token,
        settings.idp_secret,
        algorithms=[settings.idp_algorithm],
        options={**options, "verify_aud": False},
    )
