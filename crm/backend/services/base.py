"""
Base Service.

Base classes for all services providing common patterns for business logic.
Services orchestrate repositories, handle transactions, and implement
business rules.

Usage:
    from crm.backend.services.base import CrmService

    class ContactService(CrmService):
        def __init__(self, session, cache, actor, audit=None) -> None:
            super().__init__(session, cache, actor, audit)
            self.contacts = ContactRepository(session)
"""

from collections.abc import Iterable
from typing import Any, Self, TypeVar

import redis.asyncio as redis
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.cache import client_cache_key, delete_keys, delete_pattern
from crm.backend.core.exceptions import (
    ConflictError,
    DatabaseError,
)
from crm.backend.core.logging import get_logger
from crm.backend.core.security import SessionContext
from crm.backend.services.audit import AuditLogger

logger = get_logger(__name__)

T = TypeVar("T")


class BaseService:
    """
    Base class for all services.

    Provides:
    - Database session management
    - Logging context
    - Error wrapping for database operations
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession:
        """Get the database session."""
        return self._session

    async def _execute_db_operation(
        self,
        operation: str,
        coro: Any,
    ) -> T:
        """
        Execute a database operation with error handling.

        Wraps database operations to convert SQLAlchemy exceptions
        to application-specific exceptions.

        Raises:
            ConflictError: For unique constraint violations
            DatabaseError: For other database errors
        """
        try:
            return await coro
        except IntegrityError as e:
            self._logger.warning(
                "Database integrity error",
                extra={"operation": operation, "error": str(e)},
            )
            error_str = str(e).lower()
            if "unique" in error_str or "duplicate" in error_str:
                raise ConflictError("Resource already exists") from e
            raise DatabaseError(f"Database constraint violation: {operation}") from e
        except SQLAlchemyError as e:
            self._logger.error(
                "Database error",
                extra={"operation": operation, "error": str(e)},
            )
            raise DatabaseError(f"Database operation failed: {operation}") from e

    def _log_operation(
        self,
        operation: str,
        **context: Any,
    ) -> None:
        """Log a service operation with context."""
        self._logger.info(
            operation,
            extra={"service": self.__class__.__name__, **context},
        )

    def _log_debug(
        self,
        message: str,
        **context: Any,
    ) -> None:
        """Log debug information."""
        self._logger.debug(
            message,
            extra={"service": self.__class__.__name__, **context},
        )


class CrmService(BaseService):
    """
    Base class for CRM module services.

    Every CRM service acts on behalf of an authenticated session, writes
    through the request's database session, invalidates cache keys after
    mutations, and records an audit event for each mutating operation.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
        audit: AuditLogger | None = None,
    ) -> None:
        super().__init__(session)
        self.cache = cache
        self.actor = actor
        self.audit = audit or AuditLogger(session)

    @classmethod
    def for_request(
        cls,
        session: AsyncSession,
        cache: redis.Redis,
        actor: SessionContext,
    ) -> Self:
        """Build the service for an API request, honouring the audit feature flag."""
        from crm.backend.core.config import get_app_config

        enabled = get_app_config().features.audit_log_enabled
        return cls(session, cache, actor, AuditLogger(session, enabled=enabled))

    async def _invalidate_clients(self, client_ids: Iterable[str]) -> None:
        """Drop cached payloads of the given clients."""
        keys = [client_cache_key(client_id) for client_id in client_ids]
        removed = await delete_keys(self.cache, keys)
        self._log_debug("Client cache invalidated", keys=len(keys), removed=removed)

    async def _invalidate_pattern(self, pattern: str) -> None:
        removed = await delete_pattern(self.cache, pattern)
        self._log_debug("Cache pattern invalidated", pattern=pattern, removed=removed)

    async def _audit(
        self,
        event_type: str,
        metadata: dict[str, Any] | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        await self.audit.log(
            event_type,
            self.actor,
            metadata=metadata,
            resource_type=resource_type,
            resource_id=resource_id,
        )
