"""Configuration loading for docsite (.docsite.yml plus command-line overrides)."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml
from pydantic import TypeAdapter, ValidationError

from .models import CompatibilityEntry

CONFIG_FILENAME = ".docsite.yml"
DEFAULT_SITE_URL = "https://api-documentation.bonitasoft.com"
DEFAULT_DOWNLOAD_URL_TEMPLATE = (
    "https://github.com/bonitasoft/bonita-openapi/releases/download/"
    "${releaseVersion}/bonita-openapi-${releaseVersion}.zip"
)
VERSION_PLACEHOLDER = "${releaseVersion}"
ENV_GA_KEY = "DOCSITE_GA_KEY"

_COMPATIBILITY_ADAPTER = TypeAdapter(List[CompatibilityEntry])


class ConfigError(RuntimeError):
    """Raised when the site configuration is missing or invalid."""


@dataclass(frozen=True)
class SiteConfig:
    """Validated settings for one docsite run."""

    source_dir: Path
    output_dir: Path
    compatibility: Tuple[CompatibilityEntry, ...]
    site_url: str = DEFAULT_SITE_URL
    latest: Optional[str] = None
    download_url_template: str = DEFAULT_DOWNLOAD_URL_TEMPLATE
    port: int = 8000
    live_reload_port: int = 35729
    host: str = "localhost"
    watch: bool = False
    analytics_key: Optional[str] = None
    template_suffix: str = ".j2"
    vars_file: str = "vars.json"
    debounce_seconds: float = 0.5
    max_parallel_downloads: int = 1
    request_timeout: float = 60.0

    @property
    def static_dir(self) -> Path:
        return self.source_dir / "files"

    @property
    def templates_dir(self) -> Path:
        return self.source_dir / "templates"

    @property
    def effective_site_url(self) -> str:
        """Site URL baked into pages; the local preview address in watch mode."""
        if self.watch:
            return f"http://localhost:{self.port}"
        return self.site_url

    def download_url(self, version: str) -> str:
        return self.download_url_template.replace(VERSION_PLACEHOLDER, version)


def load_config(config_path: Path | None = None, **overrides: Any) -> SiteConfig:
    """Build a :class:`SiteConfig` from the optional YAML file and explicit overrides.

    Overrides whose value is ``None`` are ignored so unset command-line flags
    fall through to the file, then to the defaults.
    """
    config_file = _resolve_config_path(config_path)
    root = config_file.parent

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)
    data.update({key: value for key, value in overrides.items() if value is not None})

    source_dir = _as_path(root, data.get("source_dir"), "site")
    if not source_dir.is_dir():
        raise ConfigError(f'Source site directory "{source_dir}" does not exist')
    output_dir = _as_path(root, data.get("output_dir"), "build")

    compatibility = _load_compatibility_setting(root, data.get("compatibility"))

    analytics_key = _as_str(data.get("analytics_key"))
    if analytics_key is None:
        analytics_key = os.environ.get(ENV_GA_KEY) or None

    defaults = SiteConfig(source_dir=source_dir, output_dir=output_dir, compatibility=())
    return SiteConfig(
        source_dir=source_dir,
        output_dir=output_dir,
        compatibility=compatibility,
        site_url=(_as_str(data.get("site_url")) or defaults.site_url).rstrip("/"),
        latest=_as_str(data.get("latest")),
        download_url_template=_as_str(data.get("download_url_template"))
        or defaults.download_url_template,
        port=_as_int(data.get("port"), defaults.port),
        live_reload_port=_as_int(data.get("live_reload_port"), defaults.live_reload_port),
        host=_as_str(data.get("host")) or defaults.host,
        watch=_as_bool(data.get("watch")) or False,
        analytics_key=analytics_key,
        template_suffix=_as_str(data.get("template_suffix")) or defaults.template_suffix,
        vars_file=_as_str(data.get("vars_file")) or defaults.vars_file,
        debounce_seconds=_as_float(data.get("debounce_seconds"), defaults.debounce_seconds),
        max_parallel_downloads=max(
            1, _as_int(data.get("max_parallel_downloads"), defaults.max_parallel_downloads)
        ),
        request_timeout=_as_float(data.get("request_timeout"), defaults.request_timeout),
    )


def load_compatibility(path: Path) -> Tuple[CompatibilityEntry, ...]:
    """Read the compatibility matrix from a JSON or YAML file."""
    if not path.is_file():
        raise ConfigError(f'Compatibility file "{path}" does not exist')
    return parse_compatibility(read_structured_file(path), source=path.name)


def parse_compatibility(data: Any, *, source: str = "compatibility") -> Tuple[CompatibilityEntry, ...]:
    """Validate raw matrix data, either a list of entries or a mapping holding one."""
    if isinstance(data, Mapping) and "compatibility" in data:
        data = data["compatibility"]
    if not isinstance(data, Sequence) or isinstance(data, (str, bytes)):
        raise ConfigError(f"{source} must contain a list of compatibility entries")
    try:
        entries = _COMPATIBILITY_ADAPTER.validate_python(list(data))
    except ValidationError as exc:
        raise ConfigError(f"Invalid compatibility entry in {source}: {exc}") from exc
    return tuple(entries)


def read_structured_file(path: Path) -> Any:
    """Parse a JSON or YAML document, chosen by file suffix."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        return None
    try:
        if path.suffix.lower() in {".yml", ".yaml"}:
            return yaml.safe_load(text)
        return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc


def _load_compatibility_setting(root: Path, value: Any) -> Tuple[CompatibilityEntry, ...]:
    if value is None:
        return load_compatibility(root / "compatibility.json")
    if isinstance(value, (str, Path)):
        return load_compatibility(_as_path(root, value, "compatibility.json"))
    return parse_compatibility(value)


def _resolve_config_path(config_path: Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / CONFIG_FILENAME).resolve()
    config_path = Path(config_path).expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return dict(loaded)


def _as_path(root: Path, value: Any, default: str) -> Path:
    raw = Path(value) if isinstance(value, (str, Path)) and str(value) else Path(default)
    return (root / raw.expanduser()).resolve()


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            raise ConfigError(f"Expected a number, got {value!r}") from None
    return default


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"Expected an integer, got {value!r}") from None
    return default


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "SiteConfig",
    "load_compatibility",
    "load_config",
    "parse_compatibility",
    "read_structured_file",
]
