"""
Client Export Rendering.

Turns clients (and optionally their contacts, timeline and document
references) into CSV or JSON text. Spreadsheet and PDF renderers are
not available; requesting them fails the export with a clear error.
"""

import csv
import io
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from crm.backend.core.exceptions import BadRequestError
from crm.backend.models.client import Client
from crm.backend.models.contact import Contact
from crm.backend.models.enums import ExportFormat
from crm.backend.models.timeline_event import TimelineEvent

DEFAULT_FIELDS = [
    "id",
    "display_name",
    "client_type",
    "status",
    "email",
    "vat_number",
    "vat_status",
    "risk_level",
    "risk_score",
    "tags",
    "owner_id",
    "created_at",
    "updated_at",
    "archived_at",
]

CONTENT_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
}


@dataclass
class ExportOptions:
    format: ExportFormat
    fields: list[str] = field(default_factory=lambda: list(DEFAULT_FIELDS))
    include_contacts: bool = False
    include_timeline: bool = False
    include_documents: bool = False


@dataclass
class RenderedExport:
    content: str
    content_type: str
    filename: str
    row_count: int


def _cell(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return ";".join(str(item) for item in value)
    return value


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _contact_dict(contact: Contact) -> dict[str, Any]:
    return {
        "id": contact.id,
        "full_name": contact.full_name,
        "email": contact.email,
        "phone": contact.phone,
        "contact_type": contact.contact_type,
        "is_primary": contact.is_primary,
    }


def _event_dict(event: TimelineEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "event_type": event.event_type,
        "title": event.title,
        "importance": event.importance,
        "created_at": _json_value(event.created_at),
    }


def _document_dict(event: TimelineEvent) -> dict[str, Any]:
    return {
        "document_id": event.related_document_id,
        "event_id": event.id,
        "title": event.title,
        "created_at": _json_value(event.created_at),
    }


def render_clients(
    clients: list[Client],
    options: ExportOptions,
    contacts: list[Contact] | None = None,
    events: list[TimelineEvent] | None = None,
    stamp: str = "export",
) -> RenderedExport:
    """
    Render clients in the requested format.

    CSV is one row per client; related records are summarised as counts.
    JSON nests the related records under each client.

    Raises:
        BadRequestError: If the format has no renderer
    """
    if options.format not in CONTENT_TYPES:
        raise BadRequestError(f"Export format '{options.format}' is not supported")

    contacts_by_client: dict[str, list[Contact]] = {}
    for contact in contacts or []:
        contacts_by_client.setdefault(contact.client_id, []).append(contact)

    events_by_client: dict[str, list[TimelineEvent]] = {}
    for event in events or []:
        events_by_client.setdefault(event.client_id, []).append(event)

    filename = f"clients-{stamp}.{options.format}"

    if options.format == ExportFormat.CSV:
        header = list(options.fields)
        if options.include_contacts:
            header.append("contacts_count")
        if options.include_timeline:
            header.append("timeline_events_count")
        if options.include_documents:
            header.append("documents_count")

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(header)
        for client in clients:
            client_events = events_by_client.get(client.id, [])
            row = [_cell(getattr(client, name)) for name in options.fields]
            if options.include_contacts:
                row.append(len(contacts_by_client.get(client.id, [])))
            if options.include_timeline:
                row.append(len(client_events))
            if options.include_documents:
                row.append(sum(1 for e in client_events if e.related_document_id))
            writer.writerow(row)
        content = buffer.getvalue()
    else:
        records = []
        for client in clients:
            client_events = events_by_client.get(client.id, [])
            record = {name: _json_value(getattr(client, name)) for name in options.fields}
            if options.include_contacts:
                record["contacts"] = [_contact_dict(c) for c in contacts_by_client.get(client.id, [])]
            if options.include_timeline:
                record["timeline"] = [_event_dict(e) for e in client_events]
            if options.include_documents:
                record["documents"] = [
                    _document_dict(e) for e in client_events if e.related_document_id
                ]
            records.append(record)
        content = json.dumps(records, ensure_ascii=False, indent=2)

    return RenderedExport(
        content=content,
        content_type=CONTENT_TYPES[options.format],
        filename=filename,
        row_count=len(clients),
    )
