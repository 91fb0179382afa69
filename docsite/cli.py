"""CLI entrypoints for docsite commands."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict

from .config import ConfigError, load_config
from .logging import configure_logging
from .pipeline import SiteBuilder


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsite",
        description="Assemble the multi-version REST API documentation site.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .docsite.yml file (defaults to ./.docsite.yml when present).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Build static documentation site to deploy.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    build_parser.add_argument(
        "--source-dir",
        default=None,
        help="Site sources holding files/ and templates/ (defaults to ./site).",
    )
    build_parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory receiving the generated site (defaults to ./build).",
    )
    build_parser.add_argument(
        "--compatibility",
        default=None,
        help="JSON or YAML compatibility matrix (defaults to ./compatibility.json).",
    )
    build_parser.add_argument(
        "-s",
        "--site-url",
        default=None,
        help="The url of the deployed site.",
    )
    build_parser.add_argument(
        "-l",
        "--latest",
        default=None,
        help="The release to use as latest for redirection.",
    )
    build_parser.add_argument(
        "--download-url-template",
        default=None,
        help="URL template to download a release; '${releaseVersion}' is replaced by the version.",
    )
    build_parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="The preview server port used to browse the site (default 8000).",
    )
    build_parser.add_argument(
        "--live-reload-port",
        type=int,
        default=None,
        help="The live reload server port, only used by browsers to check for reloads (default 35729).",
    )
    build_parser.add_argument(
        "-w",
        "--watch",
        action="store_true",
        default=None,
        help="Start a preview server and rebuild on source changes.",
    )
    build_parser.add_argument(
        "--ga-key",
        default=None,
        help="Analytics key substituted for $GA_KEY in generated pages.",
    )

    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "source_dir": args.source_dir,
        "output_dir": args.output_dir,
        "compatibility": args.compatibility,
        "site_url": args.site_url,
        "latest": args.latest,
        "download_url_template": args.download_url_template,
        "port": args.port,
        "live_reload_port": args.live_reload_port,
        "watch": args.watch,
        "analytics_key": args.ga_key,
    }


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docsite commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "build":
        try:
            config = load_config(args.config, **_overrides(args))
            builder = SiteBuilder(config)
            builder.plan()
        except ConfigError as exc:
            parser.exit(1, f"docsite build failed: {exc}\n")
        try:
            asyncio.run(builder.develop())
        except ConfigError as exc:
            parser.exit(1, f"docsite build failed: {exc}\n")
        except KeyboardInterrupt:
            parser.exit(0, "Stopped.\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


if __name__ == "__main__":
    main(sys.argv[1:])
