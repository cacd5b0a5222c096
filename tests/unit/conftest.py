"""
Unit Test Fixtures.

Fixtures for unit tests - all external dependencies are mocked.
Unit tests should be fast and isolated, never touching real databases.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from crm.backend.core.config_schema import (
    BulkLimitsSchema,
    JwtSchema,
    StatisticsSchema,
    TaggingDefaultsSchema,
)


# =============================================================================
# Database Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """
    Mock database session for unit tests.

    Usage:
        def test_repository(mock_db_session: AsyncMock):
            repo = ContactRepository(mock_db_session)
    """
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    session.add = MagicMock()
    session.delete = AsyncMock()
    return session


# =============================================================================
# Redis Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_redis() -> MagicMock:
    """Mock Redis client with the calls the cache helpers make."""
    redis = MagicMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.keys = AsyncMock(return_value=[])
    redis.ping = AsyncMock(return_value=True)
    return redis


# =============================================================================
# Config Stub Fixtures
# =============================================================================


@pytest.fixture
def crm_config() -> SimpleNamespace:
    """
    Stub of AppConfig carrying real schema objects for the CRM sections.

    Usage:
        with patch("crm.backend.services.bulk.get_app_config", return_value=crm_config):
            ...
    """
    return SimpleNamespace(
        crm=SimpleNamespace(
            statistics=StatisticsSchema(cache_ttl_seconds=300, cache_prefix="statistics"),
            bulk=BulkLimitsSchema(
                max_clients=100,
                max_delete=50,
                max_export=1000,
                export_expiry_hours=24,
            ),
            tagging=TaggingDefaultsSchema(
                default_color="#3B82F6",
                max_tags_per_request=50,
                max_bulk_clients=1000,
                cache_ttl_seconds=600,
            ),
        ),
        security=SimpleNamespace(
            jwt=JwtSchema(algorithm="HS256", access_token_expire_minutes=30, audience="test-api"),
        ),
        features=SimpleNamespace(
            api_detailed_errors=False,
            api_request_logging=False,
            audit_log_enabled=True,
            statistics_cache_enabled=True,
            background_export_enabled=False,
        ),
        application=SimpleNamespace(api_prefix="/api/v1"),
    )


# =============================================================================
# Logging Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_logger() -> MagicMock:
    """
    Mock logger for testing logging calls.

    Usage:
        def test_logging(mock_logger):
            with patch("module.logger", mock_logger):
                ...
                mock_logger.info.assert_called_once()
    """
    logger = MagicMock()
    logger.debug = MagicMock()
    logger.info = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    return logger
