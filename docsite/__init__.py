"""Multi-version documentation site builder."""

from .config import ConfigError, SiteConfig, load_config
from .pipeline import BuildResult, SiteBuilder
from .versions import VersionPlan, plan_versions, resolve_versions, validate_latest

__all__ = [
    "BuildResult",
    "ConfigError",
    "SiteBuilder",
    "SiteConfig",
    "VersionPlan",
    "load_config",
    "plan_versions",
    "resolve_versions",
    "validate_latest",
]
