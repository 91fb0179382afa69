"""Core data models shared across docsite components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CompatibilityEntry(BaseModel):
    """One row of the compatibility matrix: a product version and its API versions."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_version: str = Field(alias="productVersion")
    api_versions: Tuple[str, ...] = Field(alias="apiVersions", default=())

    @field_validator("product_version", mode="before")
    @classmethod
    def _coerce_product_version(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("api_versions", mode="before")
    @classmethod
    def _normalise_api_versions(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (str, int, float)):
            value = [value]
        if not isinstance(value, (list, tuple, set, frozenset)):
            return value
        return tuple(sorted({str(item) for item in value}))

    def as_context(self) -> Dict[str, Any]:
        """Return the camelCase mapping exposed to templates."""
        return {
            "productVersion": self.product_version,
            "apiVersions": list(self.api_versions),
        }


@dataclass(frozen=True)
class ReleaseArtifact:
    """A release archive fetched for one documentation version."""

    version: str
    download_url: str
    archive_path: Path
    extracted_path: Path


@dataclass
class SyncResult:
    """Outcome of synchronizing every planned release."""

    artifacts: List[ReleaseArtifact] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def versions(self) -> List[str]:
        return [artifact.version for artifact in self.artifacts]


@dataclass(frozen=True)
class RenderedPage:
    """A template source file and the output file rendered from it."""

    source: Path
    target: Path


@dataclass(frozen=True)
class WatchEvent:
    """A single filesystem change observed under the source tree."""

    kind: str
    path: Path
    timestamp: float


class TemplateContext(Mapping[str, Any]):
    """Read-only variables for one render pass."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = MappingProxyType(dict(values))

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"TemplateContext({dict(self._values)!r})"


__all__ = [
    "CompatibilityEntry",
    "ReleaseArtifact",
    "RenderedPage",
    "SyncResult",
    "TemplateContext",
    "WatchEvent",
]
