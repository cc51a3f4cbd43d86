"""SQLite persistence for created tickets and audit events."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from ticketdesk.errors import PersistenceError
from ticketdesk.models import CreatedTicketRecord

_TICKET_COLUMNS = (
    "jira_key",
    "jira_url",
    "technology",
    "solution_code",
    "environment",
    "squad",
    "email",
    "cpu",
    "ram",
    "db_engine",
    "disk_size",
    "storage_type",
    "storage_quota",
    "created_by",
)


class TicketDB:
    """Small SQLite wrapper for created Jira tickets and audit events."""

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self.db_path = str(db_path)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS jira_tickets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                jira_key TEXT NOT NULL UNIQUE,
                jira_url TEXT NOT NULL,
                technology TEXT NOT NULL,
                solution_code TEXT NOT NULL,
                environment TEXT NOT NULL,
                squad TEXT NOT NULL,
                email TEXT NOT NULL,
                cpu INTEGER,
                ram INTEGER,
                db_engine TEXT,
                disk_size INTEGER,
                storage_type TEXT,
                storage_quota INTEGER,
                created_by INTEGER,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_jira_tickets_squad ON jira_tickets(squad);

            CREATE TRIGGER IF NOT EXISTS trg_jira_tickets_updated_at
            AFTER UPDATE ON jira_tickets
            FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
            BEGIN
                UPDATE jira_tickets SET updated_at = CURRENT_TIMESTAMP WHERE id = OLD.id;
            END;

            CREATE TABLE IF NOT EXISTS audit_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_type TEXT NOT NULL,
                event_json TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        self.conn.commit()

    def insert_ticket(self, record: CreatedTicketRecord) -> CreatedTicketRecord:
        values = record.model_dump()
        placeholders = ", ".join("?" for _ in _TICKET_COLUMNS)
        try:
            self.conn.execute(
                f"INSERT INTO jira_tickets ({', '.join(_TICKET_COLUMNS)}) VALUES ({placeholders})",
                tuple(values[column] for column in _TICKET_COLUMNS),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise PersistenceError(
                f"Failed to store ticket {record.jira_key}: {exc}",
                jira_key=record.jira_key,
            ) from exc
        stored = self.get_ticket(record.jira_key)
        if stored is None:
            raise PersistenceError(
                f"Ticket {record.jira_key} missing after insert", jira_key=record.jira_key
            )
        return stored

    def get_ticket(self, jira_key: str) -> CreatedTicketRecord | None:
        row = self.conn.execute(
            "SELECT * FROM jira_tickets WHERE jira_key = ?", (jira_key,)
        ).fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    def list_tickets(self, squad: str = "", limit: int = 50) -> list[CreatedTicketRecord]:
        query = "SELECT * FROM jira_tickets"
        params: list[Any] = []
        if squad:
            query += " WHERE squad = ?"
            params.append(squad)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(max(1, int(limit)))
        rows = self.conn.execute(query, params).fetchall()
        return [_row_to_record(row) for row in rows]

    def count_tickets(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM jira_tickets").fetchone()
        return int(row[0])

    def append_audit_event(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            self.conn.execute(
                "INSERT INTO audit_events (event_type, event_json) VALUES (?, ?)",
                (event_type, json.dumps(payload, sort_keys=True)),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise PersistenceError(
                f"Failed to store audit event {event_type}: {exc}",
                jira_key=str(payload.get("jira_key", "")),
            ) from exc

    def list_audit_events(self, event_type: str = "") -> list[dict[str, Any]]:
        if event_type:
            rows = self.conn.execute(
                "SELECT id, event_type, event_json, created_at FROM audit_events "
                "WHERE event_type = ? ORDER BY id",
                (event_type,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT id, event_type, event_json, created_at FROM audit_events ORDER BY id"
            ).fetchall()
        return [
            {
                "id": row["id"],
                "event_type": row["event_type"],
                "payload": json.loads(row["event_json"]),
                "created_at": row["created_at"],
            }
            for row in rows
        ]

    def close(self) -> None:
        self.conn.close()


def _row_to_record(row: sqlite3.Row) -> CreatedTicketRecord:
    data = {column: row[column] for column in _TICKET_COLUMNS}
    data["created_at"] = row["created_at"]
    data["updated_at"] = row["updated_at"]
    return CreatedTicketRecord(**data)
