"""Pydantic request and record models.

Strings are stripped before length checks, so blank required fields are
rejected here just as ``ticketdesk.validation`` rejects them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ticketdesk.environments import Environment, decode_environments, encode_environments
from ticketdesk.validation import EMAIL_PATTERN, missing_category_fields


class TechnologyRequest(BaseModel):
    model_config = ConfigDict(
        extra="forbid", populate_by_name=True, frozen=True, str_strip_whitespace=True
    )

    technology: str = Field(min_length=1)
    solution_code: str = Field(min_length=1, alias="solutionCode")
    environment: str = Field(min_length=1)
    cpu: int | None = Field(default=None, ge=0, strict=True)
    ram: int | None = Field(default=None, ge=0, strict=True)
    db_engine: str | None = Field(default=None, alias="dbEngine")
    disk_size: int | None = Field(default=None, ge=0, strict=True, alias="diskSize")
    storage_type: str | None = Field(default=None, alias="storageType")
    storage_quota: int | None = Field(default=None, ge=0, strict=True, alias="storageQuota")

    @field_validator("environment", mode="before")
    @classmethod
    def _canonical_environment(cls, value: Any) -> Any:
        if isinstance(value, (str, list, tuple)):
            return encode_environments(decode_environments(value))
        return value

    @model_validator(mode="after")
    def _category_fields_present(self) -> "TechnologyRequest":
        missing = missing_category_fields(self.technology, self.spec_fields())
        if missing:
            raise ValueError(f"{', '.join(missing)} required for {self.technology}")
        return self

    @property
    def environments(self) -> tuple[Environment, ...]:
        return decode_environments(self.environment)

    def spec_fields(self) -> dict[str, Any]:
        return {
            "cpu": self.cpu,
            "ram": self.ram,
            "db_engine": self.db_engine,
            "disk_size": self.disk_size,
            "storage_type": self.storage_type,
            "storage_quota": self.storage_quota,
        }


class TicketRequest(TechnologyRequest):
    """One technology item together with its requester."""

    squad: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)


class TicketBatchRequest(BaseModel):
    model_config = ConfigDict(
        extra="forbid", populate_by_name=True, frozen=True, str_strip_whitespace=True
    )

    squad: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    technologies: list[TechnologyRequest] = Field(min_length=1)

    def ticket_requests(self) -> list[TicketRequest]:
        return [
            TicketRequest(**item.model_dump(), squad=self.squad, email=self.email)
            for item in self.technologies
        ]


class CreatedTicketRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    jira_key: str = Field(min_length=1)
    jira_url: str = Field(min_length=1)
    technology: str
    solution_code: str
    environment: str
    squad: str
    email: str
    cpu: int | None = None
    ram: int | None = None
    db_engine: str | None = None
    disk_size: int | None = None
    storage_type: str | None = None
    storage_quota: int | None = None
    created_by: int | None = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_request(
        cls,
        request: TicketRequest,
        jira_key: str,
        jira_url: str,
        created_by: int | None = None,
    ) -> "CreatedTicketRecord":
        return cls(
            jira_key=jira_key,
            jira_url=jira_url,
            technology=request.technology,
            solution_code=request.solution_code,
            environment=request.environment,
            squad=request.squad,
            email=request.email,
            created_by=created_by,
            **request.spec_fields(),
        )


def schema_errors(exc: PydanticValidationError, path: str = "$") -> list[dict[str, str]]:
    """Convert pydantic errors into the ``code``/``path``/``message`` shape."""
    errors: list[dict[str, str]] = []
    for error in exc.errors():
        location = path
        for part in error.get("loc", ()):
            location += f"[{part}]" if isinstance(part, int) else f".{part}"
        errors.append(
            {
                "code": f"SCHEMA_{str(error.get('type', 'invalid')).upper()}",
                "path": location,
                "message": str(error.get("msg", "Invalid value")),
            }
        )
    return sorted(errors, key=lambda e: (e["code"], e["path"], e["message"]))
