"""Tests for docsite.render."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

import pytest

from docsite.models import CompatibilityEntry, TemplateContext
from docsite.render import SiteRenderer
from docsite.versions import VersionPlan
from tests._fixtures.site_builder import SiteSourceBuilder

PLAN = VersionPlan(releases=("2.1", "1.0"), latest="2.1")


def _fixed_clock() -> datetime:
    return datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=UTC)


def test_render_strips_suffix_and_mirrors_tree(site: SiteSourceBuilder) -> None:
    site.write(
        {
            "templates/vars.json": '{"title": "REST API"}',
            "templates/index.html.j2": "<h1>{{ title }}</h1> latest={{ latest }}\n",
            "templates/nested/deep/page.html.j2": "{% for r in releases %}{{ r }};{% endfor %}\n",
        }
    )
    renderer = SiteRenderer(site.config("2.1", "1.0", latest="2.1"), clock=_fixed_clock)

    asyncio.run(renderer.render(PLAN))

    assert (site.output / "index.html").read_text() == "<h1>REST API</h1> latest=2.1\n"
    assert (site.output / "nested" / "deep" / "page.html").read_text() == "2.1;1.0;\n"
    assert not (site.output / "vars.json").exists()


def test_static_files_are_copied_before_templates_overwrite(site: SiteSourceBuilder) -> None:
    site.write(
        {
            "files/css/site.css": "body {}\n",
            "files/index.html": "static\n",
            "templates/index.html.j2": "rendered\n",
        }
    )
    renderer = SiteRenderer(site.config("2.1"))

    asyncio.run(renderer.render(VersionPlan(releases=("2.1",), latest="2.1")))

    assert (site.output / "css" / "site.css").read_text() == "body {}\n"
    assert (site.output / "index.html").read_text() == "rendered\n"


def test_context_runtime_keys_override_declarations(site: SiteSourceBuilder) -> None:
    site.write({"templates/vars.json": '{"latest": "declared", "ga_key": "G-1", "siteUrl": "x"}'})
    config = site.config(
        "2.1",
        "1.0",
        site_url="https://docs.example.com",
        port=8100,
        live_reload_port=35100,
    )
    renderer = SiteRenderer(config, clock=_fixed_clock)

    context = renderer.build_context(PLAN)

    assert isinstance(context, TemplateContext)
    assert context["latest"] == "2.1"
    assert context["ga_key"] == "G-1"
    assert context["siteUrl"] == "https://docs.example.com"
    assert context["watch"] is False
    assert context["port"] == 8100
    assert context["liveReloadPort"] == 35100
    assert context["lastModified"] == "2024-05-01T12:30:15.123Z"
    assert context["releases"] == ["2.1", "1.0"]
    assert context["compatibility"] == [
        {"productVersion": "product-2.1", "apiVersions": ["2.1"]},
        {"productVersion": "product-1.0", "apiVersions": ["1.0"]},
    ]


def test_context_is_read_only(site: SiteSourceBuilder) -> None:
    context = SiteRenderer(site.config("2.1")).build_context(PLAN)

    with pytest.raises(TypeError):
        context["latest"] = "1.0"  # type: ignore[index]
    assert context["latest"] == "2.1"


def test_yaml_declarations_are_supported(site: SiteSourceBuilder) -> None:
    site.write(
        {
            "templates/vars.yml": "title: From YAML\n",
            "templates/index.html.j2": "{{ title }}",
        }
    )
    renderer = SiteRenderer(site.config("2.1", vars_file="vars.yml"))

    asyncio.run(renderer.render(PLAN))

    assert (site.output / "index.html").read_text() == "From YAML"


def test_same_context_renders_identical_bytes(site: SiteSourceBuilder) -> None:
    site.write({"templates/page.html.j2": "{{ lastModified }} {{ releases | join(',') }}\n"})
    renderer = SiteRenderer(site.config("2.1", "1.0"))
    context = renderer.build_context(PLAN)

    asyncio.run(renderer.render_tree(context))
    first = (site.output / "page.html").read_bytes()
    asyncio.run(renderer.render_tree(context))
    second = (site.output / "page.html").read_bytes()

    assert first == second


def test_failing_template_does_not_stop_the_walk(site: SiteSourceBuilder, caplog) -> None:
    site.write(
        {
            "templates/a-broken.html.j2": "{% for x in %}\n",
            "templates/b-good.html.j2": "ok\n",
            "templates/readme.txt": "not a template\n",
        }
    )
    renderer = SiteRenderer(site.config("2.1"))

    with caplog.at_level(logging.WARNING, logger="docsite"):
        pages = asyncio.run(renderer.render_tree(renderer.build_context(PLAN)))

    assert [page.target.name for page in pages] == ["b-good.html"]
    assert (site.output / "b-good.html").read_text() == "ok\n"
    assert not (site.output / "a-broken.html").exists()
    messages = [record.getMessage() for record in caplog.records]
    assert any("Failed to render template" in message for message in messages)
    assert any("readme.txt is not a template file" in message for message in messages)


def test_template_raising_at_render_time_is_isolated(site: SiteSourceBuilder, caplog) -> None:
    site.write(
        {
            "templates/a.html.j2": "{{ 1 / 0 }}",
            "templates/b.html.j2": "ok",
        }
    )
    renderer = SiteRenderer(site.config("2.1"))

    with caplog.at_level(logging.ERROR, logger="docsite"):
        asyncio.run(renderer.render(PLAN))

    assert (site.output / "b.html").read_text() == "ok"
    assert not (site.output / "a.html").exists()
    failures = [
        record.getMessage()
        for record in caplog.records
        if record.getMessage().startswith("Failed to render template")
    ]
    assert len(failures) == 1
    assert "division by zero" in failures[0]


def test_watch_flags_are_exposed_to_templates(site: SiteSourceBuilder) -> None:
    site.write(
        {
            "templates/index.html.j2": (
                "{% if watch %}<script src=\"http://localhost:{{ liveReloadPort }}/livereload.js\">"
                "</script>{% endif %}{{ siteUrl }}"
            ),
        }
    )
    config = site.config("2.1", watch=True, port=8000, live_reload_port=35729)

    asyncio.run(SiteRenderer(config).render(PLAN))

    assert (site.output / "index.html").read_text() == (
        '<script src="http://localhost:35729/livereload.js"></script>http://localhost:8000'
    )


def test_compatibility_entries_keep_sorted_versions() -> None:
    entry = CompatibilityEntry(productVersion="2024.1", apiVersions=["2.1", "1.0", "2.1"])

    assert entry.as_context() == {"productVersion": "2024.1", "apiVersions": ["1.0", "2.1"]}
