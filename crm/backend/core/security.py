"""
Security Utilities.

JWT issuing and verification for API sessions.

Access tokens carry the session claims the CRM services need:
    sub    - user id
    org    - organization id
    email  - user email
    roles  - list of role names
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from jose import JWTError, jwt

from crm.backend.core.config import get_app_config, get_settings
from crm.backend.core.exceptions import AuthenticationError
from crm.backend.core.logging import get_logger
from crm.backend.core.utils import utc_now

logger = get_logger(__name__)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    settings = get_settings()
    jwt_config = get_app_config().security.jwt
    to_encode = data.copy()

    if expires_delta:
        expire = utc_now() + expires_delta
    else:
        expire = utc_now() + timedelta(minutes=jwt_config.access_token_expire_minutes)

    to_encode.update({"exp": expire, "type": "access", "aud": jwt_config.audience})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=jwt_config.algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        AuthenticationError: If token is invalid, expired, or not an access token
    """
    settings = get_settings()
    jwt_config = get_app_config().security.jwt
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[jwt_config.algorithm],
            audience=jwt_config.audience,
        )
    except JWTError as e:
        logger.warning("Token decode failed", extra={"error": str(e)})
        raise AuthenticationError("Invalid or expired token") from e

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")
    return payload


@dataclass(frozen=True)
class SessionContext:
    """
    Authenticated caller of a service operation.

    Request-scoped fields (request_id, ip_address) are carried along so
    audit records can be correlated with request logs.
    """

    user_id: str
    organization_id: str
    email: str | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    request_id: str | None = None
    ip_address: str | None = None


def session_from_claims(
    payload: dict[str, Any],
    request_id: str | None = None,
    ip_address: str | None = None,
) -> SessionContext:
    """
    Build a SessionContext from decoded token claims.

    Raises:
        AuthenticationError: If user or organization claims are missing
    """
    user_id = payload.get("sub")
    organization_id = payload.get("org")
    if not user_id or not organization_id:
        raise AuthenticationError("Token is missing session claims")
    return SessionContext(
        user_id=str(user_id),
        organization_id=str(organization_id),
        email=payload.get("email"),
        roles=tuple(payload.get("roles") or ()),
        request_id=request_id,
        ip_address=ip_address,
    )
