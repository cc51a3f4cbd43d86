"""Ticket request validation helpers (required fields + category rules)."""

from __future__ import annotations

import re
from typing import Any, Mapping

from ticketdesk.catalog import get_category
from ticketdesk.environments import decode_environments

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
_EMAIL_RE = re.compile(EMAIL_PATTERN)

# camelCase names used by the form and JSON bodies.
FIELD_ALIASES = {
    "solutionCode": "solution_code",
    "dbEngine": "db_engine",
    "diskSize": "disk_size",
    "storageType": "storage_type",
    "storageQuota": "storage_quota",
}

_STRING_FIELDS = ("technology", "solution_code")
_INT_FIELDS = ("cpu", "ram", "disk_size", "storage_quota")
_TEXT_OPTIONAL_FIELDS = ("db_engine", "storage_type")


def normalize_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {FIELD_ALIASES.get(key, key): value for key, value in data.items()}


def missing_category_fields(technology: str, fields: Mapping[str, Any]) -> list[str]:
    """Return the category-required fields that are absent, blank or zero."""
    category = get_category(technology)
    if category is None:
        return []
    return [name for name in category.required_fields if _is_blank(fields.get(name))]


def _is_blank(value: Any) -> bool:
    return not value or (isinstance(value, str) and not value.strip())


def validate_requester(squad: Any, email: Any) -> list[dict[str, str]]:
    errors: list[dict[str, str]] = []
    if not isinstance(squad, str) or not squad.strip():
        errors.append(
            {
                "code": "RULE_REQUIRED_FIELD",
                "path": "$.squad",
                "message": "Squad is required",
            }
        )
    if not isinstance(email, str) or not email.strip():
        errors.append(
            {
                "code": "RULE_REQUIRED_FIELD",
                "path": "$.email",
                "message": "Email is required",
            }
        )
    elif not _EMAIL_RE.match(email.strip()):
        errors.append(
            {
                "code": "RULE_EMAIL_INVALID",
                "path": "$.email",
                "message": f"{email!r} is not a valid email address",
            }
        )
    return errors


def validate_technology_request(
    item: Mapping[str, Any],
    *,
    path: str = "$",
) -> list[dict[str, str]]:
    """Return deterministic machine-readable errors for one technology item."""
    data = normalize_keys(item)
    errors: list[dict[str, str]] = []

    for key in _STRING_FIELDS:
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            errors.append(
                {
                    "code": "RULE_REQUIRED_FIELD",
                    "path": f"{path}.{key}",
                    "message": f"'{key}' is a required property",
                }
            )

    environment = data.get("environment")
    if not environment:
        errors.append(
            {
                "code": "RULE_REQUIRED_FIELD",
                "path": f"{path}.environment",
                "message": "'environment' is a required property",
            }
        )
    elif not isinstance(environment, (str, list, tuple)):
        errors.append(
            {
                "code": "SCHEMA_TYPE",
                "path": f"{path}.environment",
                "message": f"{environment!r} is not of type 'string'",
            }
        )
    else:
        try:
            decode_environments(environment)
        except ValueError as exc:
            errors.append(
                {
                    "code": "RULE_ENVIRONMENT_INVALID",
                    "path": f"{path}.environment",
                    "message": str(exc),
                }
            )

    for key in _INT_FIELDS:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append(
                {
                    "code": "SCHEMA_TYPE",
                    "path": f"{path}.{key}",
                    "message": f"{value!r} is not of type 'integer'",
                }
            )
        elif value < 0:
            errors.append(
                {
                    "code": "SCHEMA_MINIMUM",
                    "path": f"{path}.{key}",
                    "message": f"{value} is less than the minimum of 0",
                }
            )

    for key in _TEXT_OPTIONAL_FIELDS:
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(
                {
                    "code": "SCHEMA_TYPE",
                    "path": f"{path}.{key}",
                    "message": f"{value!r} is not of type 'string'",
                }
            )

    technology = data.get("technology")
    if isinstance(technology, str):
        for key in missing_category_fields(technology.strip(), data):
            errors.append(
                {
                    "code": "RULE_CATEGORY_FIELD_REQUIRED",
                    "path": f"{path}.{key}",
                    "message": f"'{key}' is required for {technology.strip()}",
                }
            )

    return sorted(errors, key=lambda e: (e["code"], e["path"], e["message"]))


def validate_batch_request(batch: Mapping[str, Any]) -> list[dict[str, str]]:
    """Validate the shared requester fields and every technology item."""
    errors = validate_requester(batch.get("squad"), batch.get("email"))

    technologies = batch.get("technologies")
    if not isinstance(technologies, list) or not technologies:
        errors.append(
            {
                "code": "RULE_TECHNOLOGIES_EMPTY",
                "path": "$.technologies",
                "message": "At least one technology is required",
            }
        )
        technologies = []

    for idx, item in enumerate(technologies):
        item_path = f"$.technologies[{idx}]"
        if not isinstance(item, Mapping):
            errors.append(
                {
                    "code": "SCHEMA_TYPE",
                    "path": item_path,
                    "message": f"{item!r} is not of type 'object'",
                }
            )
            continue
        errors.extend(validate_technology_request(item, path=item_path))

    return sorted(errors, key=lambda e: (e["code"], e["path"], e["message"]))
