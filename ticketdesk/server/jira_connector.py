"""Jira connector contracts and factory helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from ticketdesk.shared.settings import JiraSettings


@dataclass(frozen=True)
class CreatedIssue:
    key: str
    url: str

    def as_dict(self) -> dict[str, str]:
        return {"key": self.key, "url": self.url}


class JiraConnector(Protocol):
    """Connector contract for all Jira integration implementations."""

    project_key: str

    def create_issue(self, fields: dict[str, Any]) -> CreatedIssue: ...

    def fetch_myself(self) -> dict[str, Any]: ...

    def fetch_project(self, project_key: str = "") -> dict[str, Any]: ...


def build_connector(
    settings: JiraSettings,
    connector_type: str = "",
    session: requests.Session | None = None,
) -> JiraConnector:
    """Pick the REST connector when asked for (or fully configured), else in-memory."""
    resolved = connector_type.strip().lower() or ("api" if settings.is_complete() else "memory")

    if resolved == "api":
        from ticketdesk.server.jira_connector_api import JiraAPIConnector

        return JiraAPIConnector(settings=settings, session=session)

    if resolved != "memory":
        raise ValueError(f"Unsupported connector type: {connector_type}")

    from ticketdesk.server.jira_connector_inmemory import InMemoryJiraConnector

    return InMemoryJiraConnector(
        project_key=settings.project_key or "OPS",
        domain=settings.domain or "jira.local",
    )


def build_connector_from_env(env: dict[str, str] | None = None) -> JiraConnector:
    env_map = os.environ if env is None else env
    return build_connector(
        JiraSettings.from_env(env_map),
        connector_type=env_map.get("TICKETDESK_JIRA_CONNECTOR", ""),
    )


__all__ = [
    "CreatedIssue",
    "JiraConnector",
    "build_connector",
    "build_connector_from_env",
]
