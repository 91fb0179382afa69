"""Tests for docsite.inject."""

from __future__ import annotations

import asyncio

from docsite.inject import ProductionVariableInjector
from tests._fixtures.site_builder import SiteSourceBuilder


def _write(path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_inject_rewrites_rendered_and_release_pages(site: SiteSourceBuilder) -> None:
    _write(site.output / "index.html", '<a href="$SITE_URL/latest/">$SITE_URL</a>\n')
    _write(site.output / "latest" / "index.html", "<script>ga('$GA_KEY')</script>\n")
    _write(site.output / "1.0" / "nested" / "page.html", "$SITE_URL/1.0\r\n$GA_KEY\r\n")
    _write(site.output / "latest" / "openapi.json", '{"server": "$SITE_URL"}')
    injector = ProductionVariableInjector(
        site.config("2.1", site_url="https://docs.example.com", analytics_key="G-42")
    )

    rewritten = asyncio.run(injector.inject({}))

    assert rewritten == 3
    assert (site.output / "index.html").read_text() == (
        '<a href="https://docs.example.com/latest/">https://docs.example.com</a>\n'
    )
    assert (site.output / "latest" / "index.html").read_text() == "<script>ga('G-42')</script>\n"
    assert (site.output / "1.0" / "nested" / "page.html").read_bytes() == (
        b"https://docs.example.com/1.0\r\nG-42\r\n"
    )
    assert (site.output / "latest" / "openapi.json").read_text() == '{"server": "$SITE_URL"}'
    assert list(site.output.rglob("*.docsite-tmp")) == []


def test_analytics_key_comes_from_context_when_not_configured(site: SiteSourceBuilder) -> None:
    _write(site.output / "index.html", "$GA_KEY")
    injector = ProductionVariableInjector(site.config("2.1"))

    asyncio.run(injector.inject({"ga_key": "G-VARS"}))

    assert (site.output / "index.html").read_text() == "G-VARS"


def test_analytics_key_defaults_to_empty(site: SiteSourceBuilder) -> None:
    _write(site.output / "index.html", "key=[$GA_KEY]")
    injector = ProductionVariableInjector(site.config("2.1"))

    asyncio.run(injector.inject({}))

    assert (site.output / "index.html").read_text() == "key=[]"


def test_pages_without_placeholders_are_left_untouched(site: SiteSourceBuilder) -> None:
    page = site.output / "plain.html"
    _write(page, "nothing to see\n")
    before = page.stat().st_mtime_ns
    injector = ProductionVariableInjector(site.config("2.1"))

    rewritten = asyncio.run(injector.inject({}))

    assert rewritten == 0
    assert page.stat().st_mtime_ns == before


def test_missing_output_directory_is_not_an_error(site: SiteSourceBuilder) -> None:
    injector = ProductionVariableInjector(site.config("2.1"))

    assert asyncio.run(injector.inject({})) == 0
