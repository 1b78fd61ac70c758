"""CLI entry point for stocklink."""

from __future__ import annotations

import argparse
import asyncio
import sys

import dotenv

from stocklink.config import Settings, get_settings
from stocklink.cookies import input as cookie_input
from stocklink.cookies.store import CookieStore
from stocklink.extraction.orchestrator import Extractor
from stocklink.utils import errors


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stocklink",
        description="Resolve direct download links for stock-media assets.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    extract = commands.add_parser("extract", help="Print the direct download link for an asset URL")
    extract.add_argument("url", help="Asset page URL")
    extract.add_argument(
        "--cookies",
        default=None,
        help="Cookie header string or JSON object (default: the stored cookies).",
    )
    extract.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the download URL (default: STOCKLINK_WAIT_TIMEOUT_SECONDS or 60).",
    )
    extract.add_argument("--headed", action="store_true", help="Show the browser window.")

    set_cookie = commands.add_parser("set-cookie", help="Store session cookies for later extractions")
    set_cookie.add_argument("value", help="Cookie header string or JSON object")

    commands.add_parser("serve", help="Run the HTTP API")
    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    updates: dict[str, object] = {}
    if args.timeout is not None:
        updates["wait_timeout_seconds"] = args.timeout
        updates["attempt_timeout_seconds"] = max(settings.attempt_timeout_seconds, args.timeout + 120)
    if args.headed:
        updates["headless"] = False
    return settings.model_copy(update=updates) if updates else settings


def main(argv: list[str] | None = None) -> None:
    dotenv.load_dotenv()
    args = _build_parser().parse_args(argv)

    if args.command == "serve":
        from stocklink import app

        app.main()
        return

    if args.command == "set-cookie":
        try:
            cookies = cookie_input.resolve(cookie_input.coerce_input(args.value))
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(2)
        CookieStore(get_settings().cookie_file).save(cookies.as_dict())
        print(f"Stored {len(cookies)} cookies")
        return

    extractor = Extractor(_settings_for(args))
    try:
        link = asyncio.run(extractor.extract(args.url, args.cookies))
    except errors.ExtractionError as exc:
        print(f"Error ({exc.kind}): {exc.message}", file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    print(link)


if __name__ == "__main__":
    main()
