"""Prometheus metrics for ticket submission.

Metrics live on the registry passed in at construction so that separate
services (and tests) never share counters.
"""

from __future__ import annotations

import re

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST

_INDEX_RE = re.compile(r"\[\d+\]")


class TicketTelemetry:
    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.tickets_created = Counter(
            "jira_tickets_created_total",
            "Jira tickets submitted, by outcome",
            ["technology", "environment", "status"],
            registry=self.registry,
        )
        self.ticket_creation_duration = Histogram(
            "jira_ticket_creation_duration_seconds",
            "Time spent creating one Jira ticket",
            ["technology", "status"],
            buckets=(0.1, 0.5, 1, 2, 5, 10),
            registry=self.registry,
        )
        self.jira_errors = Counter(
            "jira_errors_total",
            "Failures while creating Jira tickets",
            ["error_type", "technology"],
            registry=self.registry,
        )
        self.tickets_pending = Gauge(
            "jira_tickets_pending",
            "Items of the current batch not yet submitted",
            registry=self.registry,
        )
        self.validation_errors = Counter(
            "validation_errors_total",
            "Rejected request fields",
            ["field", "error_type"],
            registry=self.registry,
        )
        self.api_requests = Counter(
            "api_requests_total",
            "HTTP requests served",
            ["method", "endpoint", "status_code"],
            registry=self.registry,
        )
        self.api_request_duration = Histogram(
            "api_request_duration_seconds",
            "HTTP request latency",
            ["method", "endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1, 2, 5),
            registry=self.registry,
        )

    def track_ticket_creation(
        self,
        technology: str,
        environment: str,
        success: bool,
        duration_s: float,
    ) -> None:
        status = "success" if success else "failure"
        self.tickets_created.labels(
            technology=technology, environment=environment, status=status
        ).inc()
        self.ticket_creation_duration.labels(technology=technology, status=status).observe(
            duration_s
        )

    def track_jira_error(self, error_type: str, technology: str) -> None:
        self.jira_errors.labels(error_type=error_type, technology=technology).inc()

    def track_validation_errors(self, errors: list[dict[str, str]]) -> None:
        for error in errors:
            field = _INDEX_RE.sub("", error["path"]).rsplit(".", 1)[-1]
            self.validation_errors.labels(field=field, error_type=error["code"]).inc()

    def set_pending(self, count: int) -> None:
        self.tickets_pending.set(count)

    def track_api_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration_s: float,
    ) -> None:
        self.api_requests.labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).inc()
        self.api_request_duration.labels(method=method, endpoint=endpoint).observe(duration_s)

    def sample(self, name: str, labels: dict[str, str] | None = None) -> float:
        value = self.registry.get_sample_value(name, labels or {})
        return float(value or 0.0)

    def render(self) -> bytes:
        return generate_latest(self.registry)
