"""
Task Scheduler Configuration.

Runs ``purge_expired_exports`` on its cron label so rendered export
files do not outlive their download window.

Usage:
    python run.py --action scheduler

    # Or directly with taskiq
    taskiq scheduler crm.backend.tasks.scheduler:scheduler

Important:
    Run only ONE scheduler instance. Multiple instances will cause
    duplicate task execution.
"""

from typing import TYPE_CHECKING

from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from taskiq import TaskiqScheduler


def create_scheduler() -> "TaskiqScheduler":
    """
    Create the scheduler over the export tasks' schedule labels.

    Tasks are registered first so their labels are visible to the source.
    """
    from taskiq import TaskiqScheduler
    from taskiq.schedule_sources import LabelScheduleSource

    from crm.backend.tasks.broker import get_broker
    from crm.backend.tasks.export import register_tasks

    register_tasks()
    broker = get_broker()

    scheduler = TaskiqScheduler(
        broker=broker,
        sources=[LabelScheduleSource(broker)],
    )

    logger.info("Taskiq scheduler configured with LabelScheduleSource")
    return scheduler


_scheduler: "TaskiqScheduler | None" = None


def get_scheduler() -> "TaskiqScheduler":
    global _scheduler
    if _scheduler is None:
        _scheduler = create_scheduler()
    return _scheduler


def __getattr__(name: str):
    """Lazy attribute access for the taskiq CLI."""
    if name == "scheduler":
        return get_scheduler()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
