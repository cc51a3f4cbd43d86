"""In-memory Jira connector for deterministic tests and local runs."""

from __future__ import annotations

from typing import Any

from ticketdesk.errors import ExternalServiceError
from ticketdesk.server.jira_connector import CreatedIssue


class InMemoryJiraConnector:
    """Assigns sequential keys (``OPS-1``, ``OPS-2``...) and keeps created issues."""

    def __init__(
        self,
        project_key: str = "OPS",
        domain: str = "jira.local",
        fail_on_call: set[int] | None = None,
    ) -> None:
        self.project_key = project_key
        self.domain = domain
        self.fail_on_call = fail_on_call or set()
        self.calls = 0
        self.issues: dict[str, dict[str, Any]] = {}

    def create_issue(self, fields: dict[str, Any]) -> CreatedIssue:
        self.calls += 1
        if self.calls in self.fail_on_call:
            raise ExternalServiceError(
                "Jira API Error: 503 - Service Unavailable",
                status_code=503,
                detail="injected failure",
            )
        key = f"{self.project_key}-{len(self.issues) + 1}"
        self.issues[key] = dict(fields)
        return CreatedIssue(key=key, url=f"https://{self.domain}/browse/{key}")

    def fetch_myself(self) -> dict[str, Any]:
        return {"emailAddress": "ticketdesk@localhost", "displayName": "ticketdesk"}

    def fetch_project(self, project_key: str = "") -> dict[str, Any]:
        return {"key": project_key or self.project_key, "name": "In-memory project"}
