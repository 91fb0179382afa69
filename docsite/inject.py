"""Rewriting of deployment placeholders across generated pages."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Mapping

import aiofiles
import aiofiles.os

from .config import SiteConfig
from .logging import get_logger

SITE_URL_PLACEHOLDER = "$SITE_URL"
GA_KEY_PLACEHOLDER = "$GA_KEY"
_TEMP_SUFFIX = ".docsite-tmp"


class ProductionVariableInjector:
    """Replaces ``$SITE_URL`` and ``$GA_KEY`` in every HTML page of the output tree.

    Release archives ship prebuilt pages carrying the same placeholders, so the
    pass covers the whole output directory, not only rendered templates.
    """

    def __init__(self, config: SiteConfig) -> None:
        self.config = config
        self.logger = get_logger("inject")

    def replacements(self, context: Mapping[str, Any]) -> Dict[str, str]:
        analytics_key = self.config.analytics_key
        if analytics_key is None:
            analytics_key = str(context.get("ga_key") or "")
        return {
            SITE_URL_PLACEHOLDER: self.config.effective_site_url,
            GA_KEY_PLACEHOLDER: analytics_key,
        }

    async def inject(self, context: Mapping[str, Any]) -> int:
        """Rewrite placeholders in place and return the number of files changed."""
        replacements = self.replacements(context)
        pages = await asyncio.to_thread(self._discover_pages)
        rewritten = 0
        for page in pages:
            try:
                if await self._rewrite(page, replacements):
                    rewritten += 1
            except OSError as exc:
                self.logger.error("Failed to replace production variables in %s: %s", page, exc)
        self.logger.debug("Processed production variables in %d page(s)", rewritten)
        return rewritten

    def _discover_pages(self) -> List[Path]:
        if not self.config.output_dir.is_dir():
            return []
        return sorted(path for path in self.config.output_dir.rglob("*.html") if path.is_file())

    async def _rewrite(self, page: Path, replacements: Mapping[str, str]) -> bool:
        temp_path = page.with_name(page.name + _TEMP_SUFFIX)
        changed = False
        try:
            async with aiofiles.open(
                page, "r", encoding="utf-8", errors="surrogateescape", newline=""
            ) as source, aiofiles.open(
                temp_path, "w", encoding="utf-8", errors="surrogateescape", newline=""
            ) as target:
                async for line in source:
                    updated = line
                    for placeholder, value in replacements.items():
                        updated = updated.replace(placeholder, value)
                    changed = changed or updated != line
                    await target.write(updated)
            if changed:
                await aiofiles.os.replace(temp_path, page)
        finally:
            await _remove_quietly(temp_path)
        return changed


async def _remove_quietly(path: Path) -> None:
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass


__all__ = ["GA_KEY_PLACEHOLDER", "ProductionVariableInjector", "SITE_URL_PLACEHOLDER"]
