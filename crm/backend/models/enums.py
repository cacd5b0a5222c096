"""
Domain Enumerations.

String enums shared by models, schemas and services. Values are stored
as plain strings in the database.
"""

from enum import StrEnum


class ClientType(StrEnum):
    COMPANY = "company"
    INDIVIDUAL = "individual"


class ClientStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


class VatStatus(StrEnum):
    ACTIVE = "active"
    NOT_REGISTERED = "not_registered"
    INVALID = "invalid"
    EXEMPT = "exempt"
    NOT_VALIDATED = "not_validated"


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ContactType(StrEnum):
    PRIMARY = "primary"
    BILLING = "billing"
    TECHNICAL = "technical"
    LEGAL = "legal"
    OTHER = "other"


class ContactStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class EventType(StrEnum):
    NOTE = "note"
    CALL = "call"
    MEETING = "meeting"
    EMAIL = "email"
    DOCUMENT = "document"
    STATUS_CHANGE = "status_change"
    CONTACT_ADDED = "contact_added"
    CONTACT_UPDATED = "contact_updated"
    VAT_VALIDATED = "vat_validated"
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"
    INVOICE = "invoice"
    PAYMENT = "payment"
    CUSTOM = "custom"


class Importance(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class SelectionMode(StrEnum):
    SINGLE = "SINGLE"
    MULTIPLE = "MULTIPLE"


class BulkOperationType(StrEnum):
    ARCHIVE = "archive"
    RESTORE = "restore"
    DELETE = "delete"
    UPDATE_STATUS = "update_status"
    UPDATE_TAGS = "update_tags"
    ASSIGN_OWNER = "assign_owner"
    EXPORT = "export"


class BulkOperationStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ExportFormat(StrEnum):
    CSV = "csv"
    XLSX = "xlsx"
    JSON = "json"
    PDF = "pdf"
