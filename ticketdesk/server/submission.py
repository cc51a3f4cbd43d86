"""Submit technology requests to Jira, one ticket per item.

Batches are processed strictly in request order. The first failing item halts
the batch; tickets created before it stay in Jira and in the local store.
"""

from __future__ import annotations

import time
from typing import Any, Mapping, NoReturn

from pydantic import ValidationError as PydanticValidationError

from ticketdesk.errors import (
    BatchSubmissionError,
    ExternalServiceError,
    PersistenceError,
    TicketDeskError,
    ValidationError,
)
from ticketdesk.jira.formatter import build_issue_fields, get_priority
from ticketdesk.models import (
    CreatedTicketRecord,
    TechnologyRequest,
    TicketBatchRequest,
    TicketRequest,
    schema_errors,
)
from ticketdesk.server.db import TicketDB
from ticketdesk.server.jira_connector import JiraConnector
from ticketdesk.server.telemetry import TicketTelemetry
from ticketdesk.shared.logging_utils import get_logger
from ticketdesk.validation import (
    normalize_keys,
    validate_requester,
    validate_technology_request,
)

logger = get_logger(__name__)


class TicketSubmissionService:
    def __init__(
        self,
        db: TicketDB,
        connector: JiraConnector,
        telemetry: TicketTelemetry | None = None,
    ) -> None:
        self.db = db
        self.connector = connector
        self.telemetry = telemetry if telemetry is not None else TicketTelemetry()

    def create_single_ticket(
        self,
        request: TicketRequest | Mapping[str, Any],
        created_by: int | None = None,
    ) -> dict[str, str]:
        ticket = self._validated_ticket(request)
        return self._submit(ticket, created_by=created_by)

    def create_batch_tickets(
        self,
        batch: TicketBatchRequest | Mapping[str, Any],
        created_by: int | None = None,
    ) -> list[dict[str, str]]:
        if isinstance(batch, TicketBatchRequest):
            squad, email = batch.squad, batch.email
            items: Any = list(batch.technologies)
        else:
            squad, email = batch.get("squad"), batch.get("email")
            items = batch.get("technologies")

        errors = validate_requester(squad, email)
        if not isinstance(items, list) or not items:
            errors.append(
                {
                    "code": "RULE_TECHNOLOGIES_EMPTY",
                    "path": "$.technologies",
                    "message": "At least one technology is required",
                }
            )
        if errors:
            self._reject(errors)

        results: list[dict[str, str]] = []
        self.telemetry.set_pending(len(items))
        try:
            for index, item in enumerate(items):
                try:
                    ticket = self._validated_ticket(
                        _with_requester(item, squad, email),
                        path=f"$.technologies[{index}]",
                    )
                    result = self._submit(ticket, created_by=created_by)
                except TicketDeskError as exc:
                    logger.warning(
                        "Batch for squad %s halted at item %d/%d after %d created: %s",
                        squad,
                        index + 1,
                        len(items),
                        len(results),
                        exc,
                    )
                    self._audit_failure(
                        "batch_halted",
                        {
                            "squad": squad,
                            "failed_index": index,
                            "created_keys": [r["key"] for r in results],
                            "error_category": exc.category,
                        },
                    )
                    raise BatchSubmissionError(exc, failed_index=index, created=results) from exc
                results.append(result)
                self.telemetry.set_pending(len(items) - index - 1)
        finally:
            self.telemetry.set_pending(0)

        logger.info("Batch for squad %s created %d ticket(s)", squad, len(results))
        return results

    def get_ticket(self, jira_key: str) -> CreatedTicketRecord | None:
        return self.db.get_ticket(jira_key)

    def list_tickets(self, squad: str = "", limit: int = 50) -> list[CreatedTicketRecord]:
        return self.db.list_tickets(squad=squad, limit=limit)

    def _validated_ticket(
        self,
        request: TicketRequest | Mapping[str, Any],
        path: str = "$",
    ) -> TicketRequest:
        if isinstance(request, TicketRequest):
            return request
        if not isinstance(request, Mapping):
            self._reject(
                [
                    {
                        "code": "SCHEMA_TYPE",
                        "path": path,
                        "message": f"{request!r} is not of type 'object'",
                    }
                ]
            )

        data = normalize_keys(request)
        errors = validate_requester(data.get("squad"), data.get("email"))
        errors.extend(validate_technology_request(data, path=path))
        if errors:
            self._reject(errors)
        try:
            return TicketRequest.model_validate(data)
        except PydanticValidationError as exc:
            self._reject(schema_errors(exc, path=path))

    def _reject(self, errors: list[dict[str, str]]) -> NoReturn:
        self.telemetry.track_validation_errors(errors)
        logger.info("Rejected ticket request: %s", [e["path"] for e in errors])
        raise ValidationError(errors)

    def _audit_failure(self, event_type: str, payload: dict[str, Any]) -> None:
        # Called while another error is propagating; that error must win.
        try:
            self.db.append_audit_event(event_type, payload)
        except PersistenceError as exc:
            logger.error("Audit event %s was not stored (%s): %s", event_type, exc, payload)

    def _submit(self, ticket: TicketRequest, created_by: int | None) -> dict[str, str]:
        started = time.perf_counter()
        fields = build_issue_fields(ticket, self.connector.project_key)
        try:
            issue = self.connector.create_issue(fields)
        except ExternalServiceError as exc:
            elapsed = time.perf_counter() - started
            self.telemetry.track_ticket_creation(
                ticket.technology, ticket.environment, False, elapsed
            )
            self.telemetry.track_jira_error(exc.error_type, ticket.technology)
            logger.error(
                "Jira ticket creation failed for [%s] %s: status=%s detail=%s",
                ticket.technology,
                ticket.solution_code,
                exc.status_code,
                exc.detail,
            )
            self._audit_failure(
                "ticket_failed",
                {
                    "technology": ticket.technology,
                    "environment": ticket.environment,
                    "solution_code": ticket.solution_code,
                    "error_type": exc.error_type,
                    "status_code": exc.status_code,
                },
            )
            raise

        record = CreatedTicketRecord.from_request(
            ticket, jira_key=issue.key, jira_url=issue.url, created_by=created_by
        )
        try:
            self.db.insert_ticket(record)
        except PersistenceError:
            elapsed = time.perf_counter() - started
            self.telemetry.track_ticket_creation(
                ticket.technology, ticket.environment, False, elapsed
            )
            self.telemetry.track_jira_error("persistence", ticket.technology)
            logger.error("Jira issue %s was created but could not be stored locally", issue.key)
            self._audit_failure(
                "ticket_orphaned",
                {
                    "jira_key": issue.key,
                    "jira_url": issue.url,
                    "technology": ticket.technology,
                    "environment": ticket.environment,
                    "squad": ticket.squad,
                },
            )
            raise

        elapsed = time.perf_counter() - started
        self.telemetry.track_ticket_creation(ticket.technology, ticket.environment, True, elapsed)
        self.db.append_audit_event(
            "ticket_created",
            {
                "jira_key": issue.key,
                "technology": ticket.technology,
                "environment": ticket.environment,
                "priority": get_priority(ticket.environment),
                "squad": ticket.squad,
                "latency_ms": round(elapsed * 1000, 3),
            },
        )
        logger.info("Created Jira issue %s for [%s] %s", issue.key, ticket.technology, ticket.squad)
        return issue.as_dict()


def _with_requester(item: Any, squad: Any, email: Any) -> Any:
    if isinstance(item, TechnologyRequest):
        return TicketRequest(**item.model_dump(), squad=squad, email=email)
    if isinstance(item, Mapping):
        return {**normalize_keys(item), "squad": squad, "email": email}
    return item
