"""
Unit Tests for Client Export Rendering.

Rows are plain ORM instances that are never added to a session.
"""

import csv
import io
import json
from datetime import datetime

import pytest

from crm.backend.core.exceptions import BadRequestError
from crm.backend.models.client import Client
from crm.backend.models.contact import Contact
from crm.backend.models.enums import ExportFormat
from crm.backend.models.timeline_event import TimelineEvent
from crm.backend.services.export import ExportOptions, render_clients

CREATED = datetime(2024, 3, 1, 9, 30)


@pytest.fixture
def clients():
    return [
        Client(
            id="c1",
            display_name="Acme Sp. z o.o.",
            email="office@acme.test",
            tags=["vip", "b2b"],
            status="active",
            created_at=CREATED,
        ),
        Client(id="c2", display_name="Globex", email=None, tags=[], status="inactive", created_at=CREATED),
    ]


@pytest.fixture
def contacts():
    return [
        Contact(id="p1", client_id="c1", first_name="Anna", last_name="Nowak", is_primary=True),
        Contact(id="p2", client_id="c1", first_name="Jan", last_name="Kowalski", is_primary=False),
    ]


@pytest.fixture
def events():
    return [
        TimelineEvent(id="e1", client_id="c1", event_type="call", title="Intro call", created_at=CREATED),
        TimelineEvent(
            id="e2",
            client_id="c1",
            event_type="document",
            title="Contract",
            related_document_id="d1",
            created_at=CREATED,
        ),
    ]


def _csv_rows(content: str) -> list[dict[str, str]]:
    return list(csv.DictReader(io.StringIO(content)))


class TestCsv:
    def test_selected_fields_in_order(self, clients):
        options = ExportOptions(format=ExportFormat.CSV, fields=["display_name", "email", "tags"])

        rendered = render_clients(clients, options, stamp="20240301")

        assert rendered.content_type == "text/csv"
        assert rendered.filename == "clients-20240301.csv"
        assert rendered.row_count == 2
        header = rendered.content.splitlines()[0]
        assert header == "display_name,email,tags"
        rows = _csv_rows(rendered.content)
        assert rows[0] == {"display_name": "Acme Sp. z o.o.", "email": "office@acme.test", "tags": "vip;b2b"}
        assert rows[1]["email"] == ""

    def test_datetimes_are_iso(self, clients):
        rendered = render_clients(clients, ExportOptions(format=ExportFormat.CSV, fields=["created_at"]))
        assert _csv_rows(rendered.content)[0]["created_at"] == "2024-03-01T09:30:00"

    def test_related_records_are_counted(self, clients, contacts, events):
        options = ExportOptions(
            format=ExportFormat.CSV,
            fields=["id"],
            include_contacts=True,
            include_timeline=True,
            include_documents=True,
        )

        rows = _csv_rows(render_clients(clients, options, contacts, events).content)

        assert rows[0] == {
            "id": "c1",
            "contacts_count": "2",
            "timeline_events_count": "2",
            "documents_count": "1",
        }
        assert rows[1]["contacts_count"] == "0"


class TestJson:
    def test_nests_related_records(self, clients, contacts, events):
        options = ExportOptions(
            format=ExportFormat.JSON,
            fields=["id", "display_name"],
            include_contacts=True,
            include_timeline=True,
            include_documents=True,
        )

        rendered = render_clients(clients, options, contacts, events)
        records = json.loads(rendered.content)

        assert rendered.content_type == "application/json"
        assert rendered.filename.endswith(".json")
        assert [c["full_name"] for c in records[0]["contacts"]] == ["Anna Nowak", "Jan Kowalski"]
        assert [e["title"] for e in records[0]["timeline"]] == ["Intro call", "Contract"]
        assert records[0]["documents"] == [
            {"document_id": "d1", "event_id": "e2", "title": "Contract", "created_at": "2024-03-01T09:30:00"}
        ]
        assert records[1]["contacts"] == []

    def test_keeps_tags_as_list(self, clients):
        rendered = render_clients(clients, ExportOptions(format=ExportFormat.JSON, fields=["tags"]))
        assert json.loads(rendered.content)[0] == {"tags": ["vip", "b2b"]}

    def test_keeps_non_ascii(self, clients):
        clients[0].display_name = "Zakład Łódź"
        rendered = render_clients(clients, ExportOptions(format=ExportFormat.JSON, fields=["display_name"]))
        assert "Zakład Łódź" in rendered.content


class TestUnsupportedFormats:
    @pytest.mark.parametrize("fmt", [ExportFormat.XLSX, ExportFormat.PDF])
    def test_raises_bad_request(self, clients, fmt):
        with pytest.raises(BadRequestError, match="not supported"):
            render_clients(clients, ExportOptions(format=fmt))
