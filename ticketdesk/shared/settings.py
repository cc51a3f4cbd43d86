"""Runtime settings for the tracker connection and local storage."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class JiraSettings:
    """Credentials and target project for the Jira REST API."""

    domain: str
    email: str
    api_token: str
    project_key: str

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "JiraSettings":
        source = os.environ if env is None else env
        return cls(
            domain=_clean_domain(source.get("JIRA_DOMAIN", "")),
            email=source.get("JIRA_EMAIL", "").strip(),
            api_token=source.get("JIRA_API_TOKEN", "").strip(),
            project_key=source.get("JIRA_PROJECT_KEY", "").strip(),
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"

    def missing(self) -> list[str]:
        names = {
            "JIRA_DOMAIN": self.domain,
            "JIRA_EMAIL": self.email,
            "JIRA_API_TOKEN": self.api_token,
            "JIRA_PROJECT_KEY": self.project_key,
        }
        return [name for name, value in names.items() if not value]

    def is_complete(self) -> bool:
        return not self.missing()

    def redacted(self) -> dict[str, str]:
        return {
            "domain": self.domain or "unset",
            "email": self.email or "unset",
            "api_token": _redact_token(self.api_token),
            "project_key": self.project_key or "unset",
        }


@dataclass(frozen=True)
class StorageSettings:
    """Filesystem and SQLite locations used by local deployments."""

    data_dir: Path
    sqlite_path: Path

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "StorageSettings":
        source = os.environ if env is None else env
        data_dir = Path(source.get("TICKETDESK_DATA_DIR", "./data"))
        sqlite_path = Path(
            source.get("TICKETDESK_SQLITE_PATH", str(data_dir / "ticketdesk.sqlite"))
        )
        return cls(data_dir=data_dir, sqlite_path=sqlite_path)

    def ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)


def get_storage_settings(env: dict[str, str] | None = None) -> StorageSettings:
    """Build storage settings from environment variables and create directories."""

    settings = StorageSettings.from_env(env)
    settings.ensure_directories()
    return settings


def _clean_domain(value: str) -> str:
    domain = value.strip()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix) :]
    return domain.rstrip("/")


def _redact_token(token: str) -> str:
    if not token:
        return "unset"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"
