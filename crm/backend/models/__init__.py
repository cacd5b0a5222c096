"""
Database Models.

Importing this package registers every table on ``Base.metadata``.
"""

from crm.backend.models.audit_log import AuditLog
from crm.backend.models.base import Base
from crm.backend.models.bulk_operation import BulkOperation
from crm.backend.models.client import Client
from crm.backend.models.contact import Contact
from crm.backend.models.tag import ClientTag, Tag, TagCategory
from crm.backend.models.timeline_event import TimelineEvent
from crm.backend.models.user import User

__all__ = [
    "AuditLog",
    "Base",
    "BulkOperation",
    "Client",
    "ClientTag",
    "Contact",
    "Tag",
    "TagCategory",
    "TimelineEvent",
    "User",
]
