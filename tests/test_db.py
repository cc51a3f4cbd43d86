from pathlib import Path

import pytest

from ticketdesk.errors import PersistenceError
from ticketdesk.models import CreatedTicketRecord
from ticketdesk.server.db import TicketDB


def _record(key: str = "OPS-7", **overrides) -> CreatedTicketRecord:
    fields = {
        "jira_key": key,
        "jira_url": f"https://acme.atlassian.net/browse/{key}",
        "technology": "Storage",
        "solution_code": "ARCHIVE",
        "environment": "PROD",
        "squad": "Phoenix",
        "email": "a@b.com",
        "storage_type": "NFS",
        "storage_quota": 250,
    }
    fields.update(overrides)
    return CreatedTicketRecord(**fields)


def test_insert_and_read_back_with_timestamps() -> None:
    db = TicketDB()

    stored = db.insert_ticket(_record())

    assert stored.jira_key == "OPS-7"
    assert stored.storage_quota == 250
    assert stored.cpu is None
    assert stored.created_at and stored.updated_at
    assert db.get_ticket("OPS-404") is None


def test_duplicate_key_raises_persistence_error() -> None:
    db = TicketDB()
    db.insert_ticket(_record())

    with pytest.raises(PersistenceError) as exc_info:
        db.insert_ticket(_record(squad="Other"))

    assert exc_info.value.jira_key == "OPS-7"
    assert db.count_tickets() == 1
    assert db.get_ticket("OPS-7").squad == "Phoenix"


def test_records_survive_reopening_the_file(tmp_path: Path) -> None:
    path = tmp_path / "tickets.sqlite"
    first = TicketDB(path)
    first.insert_ticket(_record("OPS-1"))
    first.insert_ticket(_record("OPS-2", squad="Atlas"))
    first.close()

    reopened = TicketDB(path)
    assert [r.jira_key for r in reopened.list_tickets()] == ["OPS-2", "OPS-1"]
    assert [r.jira_key for r in reopened.list_tickets(squad="Phoenix")] == ["OPS-1"]
    assert len(reopened.list_tickets(limit=1)) == 1


def test_audit_events_round_trip() -> None:
    db = TicketDB()
    db.append_audit_event("ticket_created", {"jira_key": "OPS-1"})
    db.append_audit_event("ticket_failed", {"error_type": "http_500"})

    assert [e["event_type"] for e in db.list_audit_events()] == ["ticket_created", "ticket_failed"]
    assert db.list_audit_events("ticket_failed")[0]["payload"] == {"error_type": "http_500"}


def test_audit_write_failure_raises_persistence_error() -> None:
    db = TicketDB()
    db.conn.execute("DROP TABLE audit_events")

    with pytest.raises(PersistenceError) as exc_info:
        db.append_audit_event("ticket_created", {"jira_key": "OPS-3"})

    assert exc_info.value.jira_key == "OPS-3"
