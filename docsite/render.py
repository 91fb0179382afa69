"""Rendering of the template source tree into the output directory."""

from __future__ import annotations

import asyncio
import shutil
from collections import deque
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import aiofiles
from jinja2 import Environment, FileSystemLoader

from .config import ConfigError, SiteConfig, read_structured_file
from .logging import get_logger
from .models import RenderedPage, TemplateContext
from .versions import VersionPlan


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SiteRenderer:
    """Copies static files then renders every template against one context snapshot."""

    def __init__(
        self,
        config: SiteConfig,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.config = config
        self._clock = clock
        self.logger = get_logger("render")

    async def render(self, plan: VersionPlan) -> TemplateContext:
        """Run one full render pass and return the context it used."""
        self.logger.debug("Processing sources ...")
        await self.copy_static()
        context = self.build_context(plan)
        pages = await self.render_tree(context)
        self.logger.debug("Rendered %d template(s)", len(pages))
        return context

    async def copy_static(self) -> None:
        static_dir = self.config.static_dir
        if not static_dir.is_dir():
            self.logger.warning("Static files directory %s not found, skipping copy", static_dir)
            return
        await asyncio.to_thread(
            shutil.copytree, static_dir, self.config.output_dir, dirs_exist_ok=True
        )

    def load_declarations(self) -> Dict[str, Any]:
        path = self.config.templates_dir / self.config.vars_file
        if not path.is_file():
            return {}
        data = read_structured_file(path)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path.name} must contain a mapping at the root")
        return data

    def build_context(self, plan: VersionPlan) -> TemplateContext:
        config = self.config
        values: Dict[str, Any] = self.load_declarations()
        values.update(
            {
                "siteUrl": config.effective_site_url,
                "latest": plan.latest,
                "watch": config.watch,
                "port": config.port,
                "liveReloadPort": config.live_reload_port,
                "lastModified": _isoformat(self._clock()),
                "releases": list(plan.releases),
                "compatibility": [entry.as_context() for entry in config.compatibility],
            }
        )
        return TemplateContext(values)

    async def render_tree(self, context: Mapping[str, Any]) -> List[RenderedPage]:
        """Render every template below the templates directory.

        Failures are logged per file and do not stop the walk.
        """
        templates_dir = self.config.templates_dir
        suffix = self.config.template_suffix
        env = self._create_env()
        pages: List[RenderedPage] = []
        if not templates_dir.is_dir():
            self.logger.warning("Templates directory %s not found, nothing to render", templates_dir)
            return pages

        pending = deque([templates_dir])
        while pending:
            directory = pending.popleft()
            for entry in sorted(directory.iterdir()):
                if entry.is_dir():
                    pending.append(entry)
                elif entry.name.endswith(suffix):
                    page = await self._render_file(env, entry, context)
                    if page is not None:
                        pages.append(page)
                elif entry.name == self.config.vars_file:
                    continue
                else:
                    self.logger.warning("%s is not a template file, ignoring it.", entry.name)
        return pages

    def output_path(self, template: Path) -> Path:
        relative = template.relative_to(self.config.templates_dir)
        name = relative.name[: -len(self.config.template_suffix)]
        return self.config.output_dir / relative.parent / name

    def render_template(
        self, env: Environment, template: Path, context: Mapping[str, Any]
    ) -> str:
        name = template.relative_to(self.config.templates_dir).as_posix()
        return env.get_template(name).render(dict(context))

    async def _render_file(
        self, env: Environment, template: Path, context: Mapping[str, Any]
    ) -> Optional[RenderedPage]:
        target = self.output_path(template)
        try:
            result = self.render_template(env, template, context)
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "w", encoding="utf-8", newline="") as handle:
                await handle.write(result)
        except Exception as exc:
            self.logger.error("Failed to render template %s: %s", target, exc)
            return None
        return RenderedPage(source=template, target=target)

    def _create_env(self) -> Environment:
        return Environment(
            loader=FileSystemLoader(str(self.config.templates_dir)),
            keep_trailing_newline=True,
            autoescape=False,
        )


def _isoformat(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = ["SiteRenderer"]
