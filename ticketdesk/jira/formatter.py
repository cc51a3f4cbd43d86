"""Render a technology request into deterministic Jira issue fields."""

from __future__ import annotations

from typing import Any

from ticketdesk.catalog import get_category
from ticketdesk.models import TicketRequest

AUTO_CREATED_LABEL = "AutoCreated"
DEFAULT_PRIORITY = "Medium"
ISSUE_TYPE = "Task"

PRIORITY_BY_ENVIRONMENT = {
    "PROD": "High",
    "UAT": "Medium",
    "INT": "Medium",
    "DEV": "Low",
}

ACCEPTANCE_CRITERIA = (
    "Resource provisioned",
    "Configuration validated",
    "Access granted to the squad",
    "Monitoring configured",
    "Documentation updated",
)


def build_summary(request: TicketRequest) -> str:
    return f"[{request.technology}] {request.solution_code} - {request.environment}"


def _header_block(request: TicketRequest) -> str:
    return (
        "*Automated Technical Request*\n"
        "---\n"
        "*General Information*\n"
        f"* Technology: {request.technology}\n"
        f"* Environment: {request.environment}\n"
        f"* Solution Code: {request.solution_code}\n"
        f"* Squad: {request.squad}\n"
        f"* Requester: {request.email}\n"
    )


def _specification_block(request: TicketRequest) -> str:
    category = get_category(request.technology)
    if category is None or not category.fields:
        return ""
    values = request.spec_fields()
    if not all(values.get(field.name) for field in category.fields):
        return ""
    lines = [f"*{category.section}*"]
    for field in category.fields:
        value = values[field.name]
        suffix = f" {field.unit}" if field.unit else ""
        lines.append(f"* {field.label}: {value}{suffix}")
    return "\n".join(lines) + "\n"


def _acceptance_block() -> str:
    lines = ["*Acceptance Criteria*"]
    lines.extend(f"- [ ] {criterion}" for criterion in ACCEPTANCE_CRITERIA)
    return "\n".join(lines)


def build_description(request: TicketRequest) -> str:
    """Header, optional category specification, then the acceptance checklist."""
    blocks = [_header_block(request)]
    spec = _specification_block(request)
    if spec:
        blocks.append(spec)
    blocks.append(_acceptance_block())
    return "\n".join(blocks)


def build_labels(request: TicketRequest) -> list[str]:
    return [request.technology, request.environment, AUTO_CREATED_LABEL]


def get_priority(environment: str) -> str:
    return PRIORITY_BY_ENVIRONMENT.get(environment, DEFAULT_PRIORITY)


def build_issue_fields(request: TicketRequest, project_key: str) -> dict[str, Any]:
    return {
        "project": {"key": project_key},
        "summary": build_summary(request),
        "description": build_description(request),
        "issuetype": {"name": ISSUE_TYPE},
        "priority": {"name": get_priority(request.environment)},
        "labels": build_labels(request),
    }
