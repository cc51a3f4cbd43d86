"""ticketdesk CLI."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError as PydanticValidationError

from ticketdesk.catalog import default_catalog
from ticketdesk.errors import BatchSubmissionError, ExternalServiceError, TicketDeskError
from ticketdesk.jira.formatter import build_issue_fields
from ticketdesk.models import TicketBatchRequest, schema_errors
from ticketdesk.server.db import TicketDB
from ticketdesk.server.jira_connector import build_connector
from ticketdesk.server.submission import TicketSubmissionService
from ticketdesk.server.telemetry import TicketTelemetry
from ticketdesk.shared.logging_utils import configure_logging
from ticketdesk.shared.settings import JiraSettings, get_storage_settings
from ticketdesk.validation import validate_batch_request

app = typer.Typer(add_completion=False, help="ticketdesk: infrastructure requests to Jira tickets")


def _emit_validation_errors(errors: list[dict[str, str]]) -> None:
    typer.echo(json.dumps({"errors": errors}, indent=2))


def _load_batch(file: Path) -> dict[str, Any]:
    try:
        data = json.loads(file.read_text())
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{file} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{file} must contain a JSON object")
    return data


def _validated_batch(file: Path) -> TicketBatchRequest:
    data = _load_batch(file)
    errors = validate_batch_request(data)
    if errors:
        _emit_validation_errors(errors)
        raise typer.Exit(code=1)
    try:
        return TicketBatchRequest.model_validate(data)
    except PydanticValidationError as exc:
        _emit_validation_errors(schema_errors(exc))
        raise typer.Exit(code=1) from exc


def _db_path(db: Path | None) -> Path:
    return db if db is not None else get_storage_settings().sqlite_path


@app.command()
def technologies() -> None:
    """List the known technology categories and their required fields."""
    for name, category in default_catalog().items():
        required = ", ".join(category.required_fields) or "-"
        typer.echo(f"{name}: {required}")


@app.command()
def preview(
    file: Path = typer.Option(..., "--file", exists=True, dir_okay=False),
    project: str = typer.Option("", "--project", help="Jira project key"),
) -> None:
    """Print the Jira fields a batch file would produce, without sending anything."""
    batch = _validated_batch(file)
    project_key = project or JiraSettings.from_env().project_key or "OPS"
    issues = [build_issue_fields(ticket, project_key) for ticket in batch.ticket_requests()]
    typer.echo(json.dumps(issues, indent=2, ensure_ascii=False))


@app.command()
def submit(
    file: Path = typer.Option(..., "--file", exists=True, dir_okay=False),
    db: Path = typer.Option(None, "--db", help="SQLite path (defaults to TICKETDESK_SQLITE_PATH)"),
    connector: str = typer.Option(
        "", "--connector", help="api or memory (defaults to TICKETDESK_JIRA_CONNECTOR)"
    ),
) -> None:
    """Create one Jira ticket per technology in a batch file."""
    configure_logging()
    batch = _validated_batch(file)
    service = TicketSubmissionService(
        db=TicketDB(_db_path(db)),
        connector=build_connector(
            JiraSettings.from_env(),
            connector_type=connector or os.environ.get("TICKETDESK_JIRA_CONNECTOR", ""),
        ),
        telemetry=TicketTelemetry(),
    )
    try:
        results = service.create_batch_tickets(batch)
    except BatchSubmissionError as exc:
        typer.echo(
            json.dumps(
                {
                    "error": str(exc.cause),
                    "failed_index": exc.failed_index,
                    "created": exc.created,
                },
                indent=2,
            ),
            err=True,
        )
        raise typer.Exit(code=2) from exc
    except TicketDeskError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    typer.echo(json.dumps(results, indent=2))


@app.command()
def check() -> None:
    """Verify the Jira credentials and project from the environment."""
    settings = JiraSettings.from_env()
    typer.echo(json.dumps(settings.redacted(), indent=2))
    connector = build_connector(settings, connector_type="api")
    try:
        myself = connector.fetch_myself()
        project = connector.fetch_project()
    except ExternalServiceError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    typer.echo(f"Authenticated as {myself.get('emailAddress', 'unknown')}")
    typer.echo(f"Project {project.get('key', settings.project_key)} is accessible")


@app.command()
def tickets(
    squad: str = typer.Option("", "--squad"),
    limit: int = typer.Option(50, "--limit", min=1),
    db: Path = typer.Option(None, "--db"),
) -> None:
    """List locally recorded tickets, newest first."""
    records = TicketDB(_db_path(db)).list_tickets(squad=squad, limit=limit)
    typer.echo(json.dumps([record.model_dump() for record in records], indent=2))


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("ticketdesk.server.app:build_asgi_app", factory=True, host=host, port=port)


if __name__ == "__main__":
    app()
