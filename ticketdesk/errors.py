"""Exception taxonomy for ticket submission."""

from __future__ import annotations

from typing import Any


class TicketDeskError(Exception):
    """Base class for all ticketdesk failures."""

    category = "internal"


class ValidationError(TicketDeskError):
    """Missing or malformed request fields, raised before any tracker call."""

    category = "validation"

    def __init__(self, errors: list[dict[str, str]], message: str = "") -> None:
        self.errors = list(errors)
        super().__init__(message or _summarize(self.errors))


class ExternalServiceError(TicketDeskError):
    """Tracker rejected the call, was unreachable, or is not configured."""

    category = "external_service"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: Any = None,
        error_type: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.error_type = error_type or (
            f"http_{status_code}" if status_code is not None else "transport"
        )


class PersistenceError(TicketDeskError):
    """Store write failed after the tracker already created the issue."""

    category = "persistence"

    def __init__(self, message: str, jira_key: str = "") -> None:
        super().__init__(message)
        self.jira_key = jira_key


class BatchSubmissionError(TicketDeskError):
    """First failure of a batch; earlier items remain created."""

    category = "batch"

    def __init__(
        self,
        cause: TicketDeskError,
        failed_index: int,
        created: list[dict[str, str]],
    ) -> None:
        super().__init__(f"Batch halted at item {failed_index}: {cause}")
        self.cause = cause
        self.failed_index = failed_index
        self.created = list(created)


def _summarize(errors: list[dict[str, str]]) -> str:
    if not errors:
        return "Invalid request"
    return "; ".join(f"{err['path']}: {err['message']}" for err in errors)
