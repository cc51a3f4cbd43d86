from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest
import requests

from ticketdesk.errors import ExternalServiceError
from ticketdesk.server.jira_connector import build_connector, build_connector_from_env
from ticketdesk.server.jira_connector_api import JiraAPIConnector
from ticketdesk.server.jira_connector_inmemory import InMemoryJiraConnector
from ticketdesk.shared.settings import JiraSettings

SETTINGS = JiraSettings(
    domain="acme.atlassian.net",
    email="bot@acme.com",
    api_token="secret-token-1234",
    project_key="OPS",
)


@dataclass
class FakeResponse:
    status_code: int
    payload: Any
    reason: str = "OK"

    @property
    def content(self) -> bytes:
        if self.payload is None:
            return b""
        return b"json"

    @property
    def text(self) -> str:
        return str(self.payload)

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, responses: list[Any]) -> None:
        self.responses = responses
        self.calls: list[dict[str, Any]] = []

    def request(self, **kwargs: Any) -> FakeResponse:
        self.calls.append(kwargs)
        if not self.responses:
            raise RuntimeError("No fake response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_create_issue_posts_fields_with_basic_auth() -> None:
    session = FakeSession([FakeResponse(201, {"id": "10001", "key": "OPS-123"}, "Created")])
    connector = JiraAPIConnector(settings=SETTINGS, session=session)

    created = connector.create_issue({"summary": "[VM] S1 - DEV"})

    assert created.key == "OPS-123"
    assert created.url == "https://acme.atlassian.net/browse/OPS-123"
    assert created.as_dict() == {"key": "OPS-123", "url": created.url}
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://acme.atlassian.net/rest/api/2/issue"
    assert call["json"] == {"fields": {"summary": "[VM] S1 - DEV"}}
    assert call["auth"] == ("bot@acme.com", "secret-token-1234")
    assert call["timeout"] == 15


def test_non_2xx_raises_external_service_error_with_status() -> None:
    session = FakeSession(
        [
            FakeResponse(
                400,
                {"errorMessages": [], "errors": {"priority": "Priority is invalid"}},
                "Bad Request",
            )
        ]
    )
    connector = JiraAPIConnector(settings=SETTINGS, session=session)

    with pytest.raises(ExternalServiceError, match="400 - Bad Request") as exc_info:
        connector.create_issue({"summary": "x"})

    assert exc_info.value.status_code == 400
    assert exc_info.value.error_type == "http_400"
    assert exc_info.value.detail["errors"] == {"priority": "Priority is invalid"}


def test_missing_configuration_fails_before_any_request() -> None:
    session = FakeSession([])
    connector = JiraAPIConnector(
        settings=JiraSettings(domain="acme.atlassian.net", email="", api_token="", project_key="OPS"),
        session=session,
    )

    with pytest.raises(ExternalServiceError, match="Jira configuration missing") as exc_info:
        connector.create_issue({"summary": "x"})

    assert exc_info.value.error_type == "configuration"
    assert session.calls == []


def test_transport_failure_is_wrapped() -> None:
    session = FakeSession([requests.ConnectionError("connection refused")])
    connector = JiraAPIConnector(settings=SETTINGS, session=session)

    with pytest.raises(ExternalServiceError, match="unreachable") as exc_info:
        connector.create_issue({"summary": "x"})

    assert exc_info.value.status_code is None
    assert exc_info.value.error_type == "transport"


def test_response_without_key_is_rejected() -> None:
    connector = JiraAPIConnector(settings=SETTINGS, session=FakeSession([FakeResponse(201, {})]))

    with pytest.raises(ExternalServiceError) as exc_info:
        connector.create_issue({"summary": "x"})

    assert exc_info.value.error_type == "malformed_response"


def test_connectivity_checks_hit_myself_and_project() -> None:
    session = FakeSession(
        [
            FakeResponse(200, {"emailAddress": "bot@acme.com"}),
            FakeResponse(200, {"key": "OPS", "name": "Operations"}),
        ]
    )
    connector = JiraAPIConnector(settings=SETTINGS, session=session)

    assert connector.fetch_myself()["emailAddress"] == "bot@acme.com"
    assert connector.fetch_project()["key"] == "OPS"
    assert [call["url"] for call in session.calls] == [
        "https://acme.atlassian.net/rest/api/2/myself",
        "https://acme.atlassian.net/rest/api/2/project/OPS",
    ]


def test_build_connector_prefers_api_only_when_configured() -> None:
    assert isinstance(build_connector(SETTINGS), JiraAPIConnector)
    assert isinstance(build_connector_from_env(env={}), InMemoryJiraConnector)
    assert isinstance(
        build_connector(SETTINGS, connector_type="memory"), InMemoryJiraConnector
    )
    with pytest.raises(ValueError, match="Unsupported connector type"):
        build_connector(SETTINGS, connector_type="soap")


def test_build_connector_from_env_explicit_empty_env_ignores_process(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("TICKETDESK_JIRA_CONNECTOR", "api")
    connector = build_connector_from_env(env={})
    assert isinstance(connector, InMemoryJiraConnector)


def test_inmemory_connector_assigns_sequential_keys_and_injected_failures() -> None:
    connector = InMemoryJiraConnector(project_key="INFRA", fail_on_call={2})

    first = connector.create_issue({"summary": "one"})
    with pytest.raises(ExternalServiceError) as exc_info:
        connector.create_issue({"summary": "two"})
    third = connector.create_issue({"summary": "three"})

    assert first.key == "INFRA-1"
    assert third.key == "INFRA-2"
    assert exc_info.value.status_code == 503
    assert connector.calls == 3
    assert third.url == "https://jira.local/browse/INFRA-2"
