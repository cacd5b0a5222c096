"""
FastAPI Dependencies.

Shared dependencies for request handling.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.database import get_db_session
from crm.backend.core.exceptions import AuthenticationError
from crm.backend.core.logging import get_logger
from crm.backend.core.security import SessionContext, decode_token, session_from_claims

logger = get_logger(__name__)

# Type alias for database session dependency
DbSession = Annotated[AsyncSession, Depends(get_db_session)]

_bearer = HTTPBearer(auto_error=False)


async def get_request_id(x_request_id: str | None = Header(None)) -> str:
    """
    Extract or generate request ID from headers.

    Used for request tracing and correlation.
    """
    return x_request_id or str(uuid.uuid4())


RequestId = Annotated[str, Depends(get_request_id)]


async def get_current_session(
    request: Request,
    request_id: RequestId,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> SessionContext:
    """
    Resolve the authenticated session from the Bearer token.

    Raises:
        AuthenticationError: If no token is supplied or it is invalid
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    payload = decode_token(credentials.credentials)
    session = session_from_claims(
        payload,
        request_id=getattr(request.state, "request_id", request_id),
        ip_address=getattr(request.state, "client_ip", None),
    )
    logger.debug("Session resolved", extra={"user_id": session.user_id})
    return session


CurrentSession = Annotated[SessionContext, Depends(get_current_session)]
