"""Load the technology catalog (YAML) shipped with the package.

The catalog is the single source for which fields each technology category
requires and how its specification section is rendered.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "schema" / "technologies.yaml"


@dataclass(frozen=True)
class SpecField:
    name: str
    label: str
    unit: str = ""


@dataclass(frozen=True)
class TechnologyCategory:
    name: str
    section: str
    fields: tuple[SpecField, ...]

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(field.name for field in self.fields)


def load_catalog(path: Path = DEFAULT_CATALOG_PATH) -> dict[str, TechnologyCategory]:
    if not path.exists():
        raise FileNotFoundError(f"Technology catalog not found: {path}")
    raw = yaml.safe_load(path.read_text()) or {}
    catalog: dict[str, TechnologyCategory] = {}
    for name, entry in (raw.get("technologies") or {}).items():
        entry = entry or {}
        fields = tuple(
            SpecField(
                name=str(field["name"]),
                label=str(field.get("label", field["name"])),
                unit=str(field.get("unit", "")),
            )
            for field in entry.get("fields") or []
        )
        catalog[str(name)] = TechnologyCategory(
            name=str(name),
            section=str(entry.get("section", "")),
            fields=fields,
        )
    return catalog


@lru_cache(maxsize=1)
def default_catalog() -> dict[str, TechnologyCategory]:
    return load_catalog()


def get_category(technology: str) -> TechnologyCategory | None:
    """Return the catalog entry for a technology, or None for custom technologies."""
    return default_catalog().get(technology)


def list_technologies() -> list[str]:
    return list(default_catalog())
