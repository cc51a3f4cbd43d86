"""Jira REST API connector implementation."""

from __future__ import annotations

from typing import Any

import requests

from ticketdesk.errors import ExternalServiceError
from ticketdesk.server.jira_connector import CreatedIssue
from ticketdesk.shared.logging_utils import get_logger
from ticketdesk.shared.settings import JiraSettings

logger = get_logger(__name__)


class JiraAPIConnector:
    def __init__(
        self,
        settings: JiraSettings,
        session: requests.Session | None = None,
        timeout_s: float = 15,
    ) -> None:
        self.settings = settings
        self.project_key = settings.project_key
        self.session = session or requests.Session()
        self.timeout_s = timeout_s

    def browse_url(self, key: str) -> str:
        return f"{self.settings.base_url}/browse/{key}"

    def create_issue(self, fields: dict[str, Any]) -> CreatedIssue:
        payload = self._request("POST", "/rest/api/2/issue", json={"fields": fields})
        key = str(payload.get("key", "")).strip() if isinstance(payload, dict) else ""
        if not key:
            raise ExternalServiceError(
                "Jira API response did not include an issue key",
                detail=payload,
                error_type="malformed_response",
            )
        return CreatedIssue(key=key, url=self.browse_url(key))

    def fetch_myself(self) -> dict[str, Any]:
        return self._request("GET", "/rest/api/2/myself")

    def fetch_project(self, project_key: str = "") -> dict[str, Any]:
        key = project_key or self.project_key
        return self._request("GET", f"/rest/api/2/project/{key}")

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        missing = self.settings.missing()
        if missing:
            raise ExternalServiceError(
                f"Jira configuration missing: {', '.join(missing)}",
                detail=missing,
                error_type="configuration",
            )

        try:
            response = self.session.request(
                method=method,
                url=f"{self.settings.base_url}{path}",
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                auth=(self.settings.email, self.settings.api_token),
                json=json,
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            logger.error("Jira API transport error on %s %s: %s", method, path, exc)
            raise ExternalServiceError(f"Jira API unreachable: {exc}") from exc

        if not 200 <= response.status_code < 300:
            detail = _error_detail(response)
            logger.error(
                "Jira API error on %s %s: status=%s detail=%s",
                method,
                path,
                response.status_code,
                detail,
            )
            raise ExternalServiceError(
                f"Jira API Error: {response.status_code} - {response.reason}",
                status_code=response.status_code,
                detail=detail,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalServiceError(
                "Jira API returned a non-JSON body",
                status_code=response.status_code,
                error_type="malformed_response",
            ) from exc


def _error_detail(response: requests.Response) -> Any:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        messages = payload.get("errorMessages") or []
        errors = payload.get("errors") or {}
        if messages or errors:
            return {"errorMessages": messages, "errors": errors}
    return payload
