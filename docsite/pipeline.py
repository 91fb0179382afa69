"""Build pipeline orchestration for one-shot and development runs."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Optional

from .config import SiteConfig
from .inject import ProductionVariableInjector
from .logging import get_logger
from .models import SyncResult, TemplateContext
from .releases import ReleaseSynchronizer
from .render import SiteRenderer
from .server import DevPreviewServer
from .versions import VersionPlan, plan_versions
from .watch import RebuildWorker, SourceWatcher


@dataclass
class BuildResult:
    """Outcome of a full build."""

    plan: VersionPlan
    sync: SyncResult
    context: TemplateContext
    injected_pages: int


class SiteBuilder:
    """Runs version planning, release sync, rendering and placeholder injection."""

    def __init__(
        self,
        config: SiteConfig,
        *,
        synchronizer: ReleaseSynchronizer | None = None,
        renderer: SiteRenderer | None = None,
        injector: ProductionVariableInjector | None = None,
    ) -> None:
        self.config = config
        self.synchronizer = synchronizer or ReleaseSynchronizer(config)
        self.renderer = renderer or SiteRenderer(config)
        self.injector = injector or ProductionVariableInjector(config)
        self.logger = get_logger("pipeline")

    def plan(self) -> VersionPlan:
        """Resolve the versions to publish and check the template declarations.

        Raises :class:`~docsite.config.ConfigError` without touching the output
        directory, so callers can validate a run before any side effect.
        """
        plan = plan_versions(self.config.compatibility, self.config.latest)
        self.renderer.load_declarations()
        return plan

    async def build(self) -> BuildResult:
        """Run the four build stages in order.

        Version and declarations validation raise
        :class:`~docsite.config.ConfigError` before any download starts; later
        failures are logged by each stage.
        """
        plan = self.plan()
        self.logger.info("Building REST documentation site")
        self.logger.debug("The site url is %s", self.config.effective_site_url)
        self.logger.debug("Latest release is %s", plan.latest)

        self.config.output_dir.mkdir(parents=True, exist_ok=True)
        sync = await self.synchronizer.synchronize(plan)
        context = await self.renderer.render(plan)
        injected = await self._inject(context)

        self.logger.info("REST documentation generated in %s", self.config.output_dir)
        return BuildResult(plan=plan, sync=sync, context=context, injected_pages=injected)

    async def develop(
        self,
        *,
        server: Optional[DevPreviewServer] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> BuildResult:
        """Build once, then serve and rebuild on source changes until stopped.

        Rebuilds only re-render templates: releases are not synchronized again
        and production placeholders are left as-is in the local preview.
        """
        result = await self.build()
        if not self.config.watch:
            return result

        stop = stop_event or asyncio.Event()
        plan = result.plan

        async def _rebuild() -> None:
            self.logger.info("Source changed, rebuilding site")
            await self.renderer.render(plan)

        worker = RebuildWorker(_rebuild)
        watcher = SourceWatcher(
            self.config.source_dir, worker, debounce_seconds=self.config.debounce_seconds
        )
        preview = server or DevPreviewServer(self.config, plan.latest)

        worker_task = asyncio.create_task(worker.run())
        try:
            await asyncio.gather(preview.run(stop), watcher.run(stop))
        finally:
            worker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker_task
        return result

    async def _inject(self, context: TemplateContext) -> int:
        try:
            return await self.injector.inject(context)
        except Exception as exc:
            self.logger.error("Failed to replace production variables: %s", exc)
            return 0


__all__ = ["BuildResult", "SiteBuilder"]
