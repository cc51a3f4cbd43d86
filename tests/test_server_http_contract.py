import asyncio
import json
import subprocess
import sys

from prometheus_client.parser import text_string_to_metric_families

from ticketdesk.server.app import ASGIServer, ServerApp
from ticketdesk.server.jira_connector_inmemory import InMemoryJiraConnector


def _asgi_request(
    app: ASGIServer,
    method: str,
    path: str,
    body: bytes = b"",
    query_string: bytes = b"",
) -> tuple[int, bytes]:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query_string,
    }
    sent: list[dict] = []
    received = False

    async def receive() -> dict:
        nonlocal received
        if received:
            return {"type": "http.request", "body": b"", "more_body": False}
        received = True
        return {"type": "http.request", "body": body, "more_body": False}

    async def send(message: dict) -> None:
        sent.append(message)

    asyncio.run(app(scope, receive, send))

    status = next(msg["status"] for msg in sent if msg["type"] == "http.response.start")
    payload = b"".join(msg.get("body", b"") for msg in sent if msg["type"] == "http.response.body")
    return status, payload


def _json_request(app: ASGIServer, method: str, path: str, payload=None, query_string=b""):
    body = json.dumps(payload).encode("utf-8") if payload is not None else b""
    status, raw = _asgi_request(app, method, path, body=body, query_string=query_string)
    return status, json.loads(raw.decode("utf-8"))


def _app(fail_on_call=None) -> ASGIServer:
    return ASGIServer(
        service=ServerApp(connector=InMemoryJiraConnector(fail_on_call=fail_on_call))
    )


BATCH = {
    "squad": "Phoenix",
    "email": "dev@example.com",
    "technologies": [
        {
            "technology": "Kubernetes",
            "solutionCode": "APP-FRONT",
            "environment": "PROD",
            "cpu": 4,
            "ram": 8,
        },
        {
            "technology": "Database",
            "solutionCode": "S999",
            "environment": ["DEV", "UAT"],
            "dbEngine": "PostgreSQL",
            "diskSize": 100,
        },
    ],
}


def test_documented_server_startup_command_is_available():
    result = subprocess.run(
        [sys.executable, "-m", "ticketdesk.server.app", "--print-startup"],
        check=False,
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0
    assert "uvicorn ticketdesk.server.app:build_asgi_app --factory" in result.stdout


def test_health_and_unknown_routes():
    app = _app()

    assert _json_request(app, "GET", "/health") == (200, {"status": "ok"})
    assert _json_request(app, "GET", "/nope") == (404, {"error": "not_found"})


def test_single_ticket_route():
    app = _app()
    payload = {
        "technology": "VM",
        "solutionCode": "S100",
        "environment": "DEV",
        "cpu": 2,
        "ram": 4,
        "squad": "Phoenix",
        "email": "dev@example.com",
    }

    status, body = _json_request(app, "POST", "/tickets", payload)

    assert status == 200
    assert body == {"success": True, "key": "OPS-1", "url": "https://jira.local/browse/OPS-1"}


def test_batch_route_and_ticket_reads():
    app = _app()

    status, body = _json_request(app, "POST", "/tickets/batch", BATCH)
    assert status == 200
    assert [item["key"] for item in body["items"]] == ["OPS-1", "OPS-2"]
    assert body["summary"] == {"count": 2}

    status, record = _json_request(app, "GET", "/tickets/OPS-2")
    assert status == 200
    assert record["environment"] == "DEV+UAT"
    assert record["db_engine"] == "PostgreSQL"

    status, listing = _json_request(
        app, "GET", "/tickets", query_string=b"squad=Phoenix&limit=1"
    )
    assert status == 200
    assert [item["jira_key"] for item in listing["items"]] == ["OPS-2"]

    assert _json_request(app, "GET", "/tickets/OPS-99")[0] == 404
    assert _json_request(app, "GET", "/tickets", query_string=b"limit=abc")[0] == 400


def test_schema_validation_rejects_whole_batch_before_any_call():
    app = _app()
    bad = json.loads(json.dumps(BATCH))
    bad["technologies"][1].pop("diskSize")

    status, body = _json_request(app, "POST", "/tickets/batch", bad)

    assert status == 400
    assert body["error"] == "validation_failed"
    assert body["errors"][0]["path"].startswith("$.technologies[1]")
    assert app.service.connector.calls == 0


def test_invalid_json_body():
    app = _app()
    status, raw = _asgi_request(app, "POST", "/tickets/batch", body=b"{not json")
    assert status == 400
    assert json.loads(raw) == {"error": "invalid_json"}


def test_tracker_failure_is_reported_as_generic_internal_error():
    app = _app(fail_on_call={2})

    status, body = _json_request(app, "POST", "/tickets/batch", BATCH)

    assert status == 500
    assert body["error"] == "internal_error"
    assert "503" not in body["message"]
    assert body["failed_index"] == 1
    assert body["created"] == [{"key": "OPS-1", "url": "https://jira.local/browse/OPS-1"}]


def test_blank_required_fields_rejected_like_direct_callers():
    app = _app()
    payload = {
        "technology": "Middleware",
        "solutionCode": "   ",
        "environment": "   ",
        "squad": "   ",
        "email": "a@b.com",
    }

    status, body = _json_request(app, "POST", "/tickets", payload)

    assert status == 400
    assert body["error"] == "validation_failed"
    assert {error["path"] for error in body["errors"]} == {
        "$.squad",
        "$.environment",
        "$.solution_code",
    }
    assert app.service.connector.calls == 0
    assert app.service.list_tickets() == []


def test_metrics_route_exposes_counters():
    app = _app()
    _json_request(app, "POST", "/tickets/batch", BATCH)
    _json_request(app, "GET", "/tickets/OPS-1")

    status, raw = _asgi_request(app, "GET", "/metrics")

    assert status == 200
    families = {
        family.name: family for family in text_string_to_metric_families(raw.decode("utf-8"))
    }
    created = {
        (sample.labels["technology"], sample.labels["status"]): sample.value
        for sample in families["jira_tickets_created"].samples
        if sample.name == "jira_tickets_created_total"
    }
    assert created == {("Kubernetes", "success"): 1.0, ("Database", "success"): 1.0}
    assert app.service.telemetry.sample(
        "api_requests_total",
        {"method": "GET", "endpoint": "/tickets/{key}", "status_code": "200"},
    ) == 1.0
