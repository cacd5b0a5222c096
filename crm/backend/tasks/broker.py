"""
Taskiq Broker Configuration.

Configures the message broker for background export processing.
Uses Redis for both the task queue and the result backend.

Usage:
    taskiq worker crm.backend.tasks.broker:broker crm.backend.tasks.export
"""

from typing import TYPE_CHECKING

from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from taskiq_redis import ListQueueBroker


def create_broker() -> "ListQueueBroker":
    """
    Create and configure the Taskiq broker.

    Queue name and result expiry come from ``database.yaml``.
    """
    from taskiq_redis import ListQueueBroker, RedisAsyncResultBackend

    from crm.backend.core.config import get_app_config, get_redis_url

    redis_url = get_redis_url()
    broker_config = get_app_config().database.redis.broker

    result_backend = RedisAsyncResultBackend(
        redis_url=redis_url,
        result_ex_time=broker_config.result_expiry_seconds,
    )

    broker = ListQueueBroker(
        url=redis_url,
        queue_name=broker_config.queue_name,
    ).with_result_backend(result_backend)

    logger.debug(
        "Taskiq broker configured",
        extra={
            "queue_name": broker_config.queue_name,
            "result_expiry": broker_config.result_expiry_seconds,
        },
    )

    return broker


_broker: "ListQueueBroker | None" = None


def get_broker() -> "ListQueueBroker":
    """Get the broker instance, creating it if necessary."""
    global _broker
    if _broker is None:
        _broker = create_broker()

        @_broker.on_event("startup")
        async def on_startup() -> None:
            logger.info("Taskiq worker starting up")

        @_broker.on_event("shutdown")
        async def on_shutdown() -> None:
            from crm.backend.core.database import dispose_engine

            await dispose_engine()
            logger.info("Taskiq worker shutting down")

    return _broker


def __getattr__(name: str):
    """Lazy attribute access for broker."""
    if name == "broker":
        from crm.backend.tasks.export import register_tasks

        register_tasks()
        return get_broker()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
