"""Resolution of the documentation versions to publish."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import ConfigError
from .models import CompatibilityEntry


@dataclass(frozen=True)
class VersionPlan:
    """Versions to publish, newest first, and the one served as latest."""

    releases: Tuple[str, ...]
    latest: str


def resolve_versions(compatibility: Iterable[CompatibilityEntry]) -> List[str]:
    """Return every API version in the matrix once, in descending string order.

    Ordering is lexical, so "10.0" sorts before "9.0".
    """
    unique = {version for entry in compatibility for version in entry.api_versions}
    return sorted(unique, reverse=True)


def validate_latest(requested: Optional[str], versions: Sequence[str]) -> str:
    """Return the latest designation for ``versions`` or raise :class:`ConfigError`."""
    if not versions:
        raise ConfigError("The compatibility matrix does not list any release to deploy")
    if len(versions) == 1:
        return versions[0]
    if requested not in versions:
        raise ConfigError(
            f'Latest release "{requested}" is not listed in the releases to deploy '
            f"({', '.join(versions)})"
        )
    return requested


def plan_versions(
    compatibility: Iterable[CompatibilityEntry], requested_latest: Optional[str]
) -> VersionPlan:
    """Resolve the releases of ``compatibility`` and pick the one served as latest."""
    releases = resolve_versions(compatibility)
    latest = validate_latest(requested_latest, releases)
    return VersionPlan(releases=tuple(releases), latest=latest)


__all__ = ["VersionPlan", "plan_versions", "resolve_versions", "validate_latest"]
