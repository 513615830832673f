from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, replace
from datetime import date
from pathlib import Path

from . import __version__
from .config import (
    build_config_package,
    build_narrator,
    load_ai_settings,
    load_export_config,
    read_config_package,
    save_ai_settings,
    save_export_config,
)
from .database import DayflowVaultDatabase
from .exporter import ExportError, VaultExporter
from .paths import database_path
from .summary import DaySummaryGenerator

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dayflow_vault", description="Export Dayflow activity into a note vault")
    parser.add_argument("--db", type=Path, default=None, help="Path to the Dayflow database")
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command")

    export = commands.add_parser("export", help="Export one day into the vault")
    export.add_argument("date", nargs="?", default=None, help="Day to export (YYYY-MM-DD, default today)")
    export.add_argument("--force-refresh", action="store_true", help="Regenerate the day summary")
    export.add_argument("--vault", default=None, help="Override the configured vault path")

    preview = commands.add_parser("preview-week", help="Print the weekly scores for the week of a day")
    preview.add_argument("date", nargs="?", default=None, help="Any day of the week (YYYY-MM-DD)")

    config_export = commands.add_parser("config-export", help="Write export settings to a JSON file")
    config_export.add_argument("file", type=Path)
    config_export.add_argument("--include-secrets", action="store_true", help="Keep the AI API key")

    config_import = commands.add_parser("config-import", help="Load export settings from a JSON file")
    config_import.add_argument("file", type=Path)
    return parser


def _export_cli(db: DayflowVaultDatabase, day: str, force_refresh: bool, vault: str | None) -> int:
    config = load_export_config(db)
    if vault:
        config = replace(config, vault_path=vault)
    try:
        summarizer = DaySummaryGenerator(db, narrator=build_narrator(load_ai_settings(db)))
        outcome = VaultExporter(config).export_day(db, summarizer, day, force_refresh=force_refresh)
    except (ExportError, ValueError) as exc:
        logger.error("Export failed: %s", exc)
        print(f"Export failed: {exc}")
        return 1
    print(outcome.render_message())
    return 0


def _preview_cli(db: DayflowVaultDatabase, day: str) -> int:
    try:
        preview = VaultExporter(load_export_config(db)).preview_week_summary(db, day)
    except ValueError as exc:
        print(f"Preview failed: {exc}")
        return 1
    print(json.dumps(asdict(preview), indent=2))
    return 0


def _config_export_cli(db: DayflowVaultDatabase, target: Path, include_secrets: bool) -> int:
    package = build_config_package(load_export_config(db), load_ai_settings(db), include_secrets)
    target.write_text(json.dumps(package, indent=2), encoding="utf-8")
    print(f"Wrote settings to {target}")
    return 0


def _config_import_cli(db: DayflowVaultDatabase, source: Path) -> int:
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
        config, ai_settings = read_config_package(payload)
    except (OSError, ValueError) as exc:
        print(f"Import failed: {exc}")
        return 1
    save_export_config(db, config)
    save_ai_settings(db, ai_settings)
    print(f"Imported settings from {source}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(__version__)
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    db = DayflowVaultDatabase(args.db or database_path())
    if args.command == "export":
        return _export_cli(db, args.date or date.today().isoformat(), args.force_refresh, args.vault)
    if args.command == "preview-week":
        return _preview_cli(db, args.date or date.today().isoformat())
    if args.command == "config-export":
        return _config_export_cli(db, args.file, args.include_secrets)
    if args.command == "config-import":
        return _config_import_cli(db, args.file)
    parser.error(f"Unknown command: {args.command}")
    return 2
