from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from rbasync.errors import ConfigurationError, RbaSyncError
from rbasync.settings import SyncSettings, load_settings

logger = logging.getLogger("rbasync")


def _add_connection_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--host", help="host and port of the RBA API (default: $NOI_HOST)")
    p.add_argument("--user", help="API key user (default: $NOI_API_KEY_USER)")
    p.add_argument("--password", help="API key password (default: $NOI_API_KEY_PW)")
    p.add_argument("--config", help="YAML file with connection settings")
    p.add_argument("--timeout", dest="timeout_s", type=float, help="request timeout in seconds")
    p.add_argument("--retries", type=int, help="attempts per fetch/create request")
    p.add_argument("--insecure", action="store_true", help="skip TLS certificate verification")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rbasync", description="Sync runbooks between a directory and RBA")
    sub = parser.add_subparsers(dest="subcommand", required=True)

    exp = sub.add_parser("export", help="export the runbooks into path (default: current directory)")
    exp.add_argument("path", nargs="?", default=".")
    exp.add_argument("--splithtml", action="store_true", help="write step descriptions to <name>_steps/stepNNN.html")
    _add_connection_args(exp)

    imp = sub.add_parser("import", help="import the runbooks from path (default: current directory)")
    imp.add_argument("path", nargs="?", default=".")
    imp.add_argument("--publish", action="store_true", help="publish created and patched runbooks")
    _add_connection_args(imp)

    st = sub.add_parser("settings", help="print the resolved connection settings")
    _add_connection_args(st)

    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "host": args.host,
        "user": args.user,
        "password": args.password,
        "timeout_s": args.timeout_s,
        "retries": args.retries,
    }
    if args.insecure:
        out["verify_tls"] = False
    return out


async def _run(args: argparse.Namespace, settings: SyncSettings, path: Path) -> None:
    # Lazy import keeps `settings` usable without the HTTP stack
    from rbasync.rba.client import RbaClient
    from rbasync.sync import export_runbooks, import_runbooks

    async with RbaClient(settings) as client:
        if args.subcommand == "export":
            await export_runbooks(client, path, split_html=args.splithtml)
            logger.info("Export operation completed")
        else:
            await import_runbooks(client, path, publish=args.publish)
            logger.info("Import operation completed")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config, _overrides(args))
        if args.subcommand == "settings":
            print(json.dumps(settings.redacted(), indent=2))
            return 0
        settings.require_credentials()
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    path = Path(args.path).expanduser().resolve()
    if not path.is_dir():
        print(f"ERROR: {path} is not a directory", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    try:
        asyncio.run(_run(args, settings, path))
    except RbaSyncError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
