"""Ticket submission application surface with a minimal ASGI HTTP layer."""

from __future__ import annotations

import argparse
import json
import time
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

from pydantic import ValidationError as PydanticValidationError

from ticketdesk.errors import BatchSubmissionError, TicketDeskError, ValidationError
from ticketdesk.models import TicketBatchRequest, schema_errors
from ticketdesk.server.db import TicketDB
from ticketdesk.server.jira_connector import JiraConnector, build_connector_from_env
from ticketdesk.server.submission import TicketSubmissionService
from ticketdesk.server.telemetry import METRICS_CONTENT_TYPE, TicketTelemetry
from ticketdesk.shared.logging_utils import configure_logging, get_logger
from ticketdesk.shared.settings import get_storage_settings
from ticketdesk.validation import validate_batch_request

logger = get_logger(__name__)


class ServerApp:
    """Thin callable facade mirroring the HTTP endpoints."""

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        connector: JiraConnector | None = None,
        telemetry: TicketTelemetry | None = None,
    ) -> None:
        self.db = TicketDB(db_path)
        self.connector = connector if connector is not None else build_connector_from_env()
        self.telemetry = telemetry if telemetry is not None else TicketTelemetry()
        self.submissions = TicketSubmissionService(
            db=self.db,
            connector=self.connector,
            telemetry=self.telemetry,
        )

    def create_ticket(self, payload: dict[str, Any]) -> dict[str, Any]:
        result = self.submissions.create_single_ticket(payload)
        return {"success": True, **result}

    def create_tickets(self, payload: dict[str, Any]) -> list[dict[str, str]]:
        errors = validate_batch_request(payload)
        if not errors:
            try:
                batch = TicketBatchRequest.model_validate(payload)
            except PydanticValidationError as exc:
                errors = schema_errors(exc)
        if errors:
            self.telemetry.track_validation_errors(errors)
            raise ValidationError(errors)
        return self.submissions.create_batch_tickets(batch)

    def get_ticket(self, jira_key: str) -> dict[str, Any] | None:
        record = self.submissions.get_ticket(jira_key)
        return record.model_dump() if record is not None else None

    def list_tickets(self, squad: str = "", limit: int = 50) -> list[dict[str, Any]]:
        return [
            record.model_dump()
            for record in self.submissions.list_tickets(squad=squad, limit=limit)
        ]


class ASGIServer:
    """Minimal ASGI adapter exposing the ServerApp methods."""

    def __init__(self, service: ServerApp | None = None) -> None:
        self.service = service or create_app()

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope.get("type") != "http":
            await self._send_json(send, 500, {"error": "unsupported_scope"})
            return

        method = scope.get("method", "GET")
        path = scope.get("path", "")
        started = time.perf_counter()
        status = await self._dispatch(scope, receive, send, method, path)
        self.service.telemetry.track_api_request(
            method=method,
            endpoint=_endpoint_label(path),
            status_code=status,
            duration_s=time.perf_counter() - started,
        )

    async def _dispatch(
        self,
        scope: dict[str, Any],
        receive: Any,
        send: Any,
        method: str,
        path: str,
    ) -> int:
        query_params = self._parse_query_params(scope.get("query_string", b""))
        body = await self._read_body(receive)

        try:
            if method == "GET" and path == "/health":
                return await self._send_json(send, 200, {"status": "ok"})

            if method == "GET" and path == "/metrics":
                return await self._send_bytes(
                    send, 200, self.service.telemetry.render(), METRICS_CONTENT_TYPE
                )

            if method == "GET" and path == "/tickets":
                try:
                    limit = int(query_params.get("limit", "50"))
                except ValueError:
                    return await self._send_json(send, 400, {"error": "invalid_limit"})
                items = self.service.list_tickets(
                    squad=query_params.get("squad", ""), limit=limit
                )
                return await self._send_json(
                    send, 200, {"items": items, "summary": {"count": len(items)}}
                )

            if method == "GET" and path.startswith("/tickets/"):
                jira_key = path[len("/tickets/") :].strip("/")
                record = self.service.get_ticket(jira_key) if jira_key else None
                if record is None:
                    return await self._send_json(send, 404, {"error": "ticket_not_found"})
                return await self._send_json(send, 200, record)

            if method == "POST" and path == "/tickets":
                payload = self._parse_json(body)
                if payload is None:
                    return await self._send_json(send, 400, {"error": "invalid_json"})
                return await self._send_json(send, 200, self.service.create_ticket(payload))

            if method == "POST" and path == "/tickets/batch":
                payload = self._parse_json(body)
                if payload is None:
                    return await self._send_json(send, 400, {"error": "invalid_json"})
                results = self.service.create_tickets(payload)
                return await self._send_json(
                    send, 200, {"items": results, "summary": {"count": len(results)}}
                )

            return await self._send_json(send, 404, {"error": "not_found"})
        except ValidationError as exc:
            return await self._send_json(
                send, 400, {"error": "validation_failed", "errors": exc.errors}
            )
        except BatchSubmissionError as exc:
            status, payload = _error_response(exc.cause)
            payload["failed_index"] = exc.failed_index
            payload["created"] = exc.created
            return await self._send_json(send, status, payload)
        except TicketDeskError as exc:
            status, payload = _error_response(exc)
            return await self._send_json(send, status, payload)

    async def _read_body(self, receive: Any) -> bytes:
        chunks: list[bytes] = []
        while True:
            message = await receive()
            if message["type"] != "http.request":
                continue
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        return b"".join(chunks)

    def _parse_query_params(self, raw_query: bytes) -> dict[str, str]:
        if not raw_query:
            return {}
        parsed = parse_qs(raw_query.decode("utf-8"), keep_blank_values=False)
        return {key: values[-1] for key, values in parsed.items() if values}

    def _parse_json(self, body: bytes) -> dict[str, Any] | None:
        if not body:
            return {}
        try:
            parsed = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(parsed, dict):
            return None
        return parsed

    async def _send_json(self, send: Any, status: int, payload: Any) -> int:
        body = json.dumps(payload).encode("utf-8")
        return await self._send_bytes(send, status, body, "application/json")

    async def _send_bytes(self, send: Any, status: int, body: bytes, content_type: str) -> int:
        await send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": [(b"content-type", content_type.encode("utf-8"))],
            }
        )
        await send({"type": "http.response.body", "body": body})
        return status


def _error_response(exc: TicketDeskError) -> tuple[int, dict[str, Any]]:
    if isinstance(exc, ValidationError):
        return 400, {"error": "validation_failed", "errors": exc.errors}
    logger.error("Ticket submission failed (%s): %s", exc.category, exc)
    return 500, {
        "error": "internal_error",
        "message": "Failed to create the Jira ticket(s)",
    }


def _endpoint_label(path: str) -> str:
    if path.startswith("/tickets/") and path != "/tickets/batch":
        return "/tickets/{key}"
    return path or "/"


def create_app(db_path: str | Path = ":memory:") -> ServerApp:
    return ServerApp(db_path=db_path)


def build_asgi_app() -> ASGIServer:
    """Factory used by ``uvicorn --factory``."""
    configure_logging()
    settings = get_storage_settings()
    return ASGIServer(service=create_app(settings.sqlite_path))


def main() -> int:
    parser = argparse.ArgumentParser(description="ticketdesk ASGI server entrypoint")
    parser.add_argument(
        "--print-startup",
        action="store_true",
        help="print the supported uvicorn startup command and exit",
    )
    args = parser.parse_args()

    if args.print_startup:
        print(STARTUP_COMMAND)
        return 0

    parser.print_help()
    return 0


STARTUP_COMMAND = (
    "uvicorn ticketdesk.server.app:build_asgi_app --factory --host 127.0.0.1 --port 8000"
)


if __name__ == "__main__":
    raise SystemExit(main())
