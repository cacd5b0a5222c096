"""
Background Tasks Package.

Taskiq-based background processing with a Redis queue.

Usage:
    from crm.backend.tasks import register_tasks

    tasks = register_tasks()
    await tasks["process_client_export"].kiq(operation_id="...")

Worker:
    taskiq worker crm.backend.tasks.broker:broker crm.backend.tasks.export

Without Redis, the task functions are plain coroutines and can be
awaited directly.
"""

from crm.backend.tasks.broker import get_broker
from crm.backend.tasks.export import (
    TASK_CONFIG,
    process_client_export,
    purge_expired_exports,
    register_tasks,
    run_export,
)

__all__ = [
    "get_broker",
    "register_tasks",
    "TASK_CONFIG",
    "process_client_export",
    "purge_expired_exports",
    "run_export",
]
