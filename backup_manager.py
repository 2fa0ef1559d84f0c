"""Command line interface for the site backup tool."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

import yaml

from site_backup.backup import BackupRunner
from site_backup.config import AppConfig, ConfigError, load_config
from site_backup.errors import BackupError
from site_backup.params import resolve_config

EXIT_ERROR = 1
EXIT_INCOMPLETE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Backups of site directories and MySQL databases into tar archives.",
    )
    parser.add_argument("--config", default="config.yaml", help="Path to the configuration file.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase logging verbosity.")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("create", help="Create a full backup and print the archive path.")
    subparsers.add_parser("delete-junk", help="Delete backups older than expire_time.")
    subparsers.add_parser("show-config", help="Print the resolved configuration.")

    return parser


def configure_logging(level: int) -> None:
    if level >= 2:
        log_level = logging.DEBUG
    elif level == 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING
    logging.basicConfig(level=log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def load_application_config(path: Path) -> AppConfig:
    try:
        return resolve_config(load_config(path))
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(EXIT_ERROR)


def handle_create(runner: BackupRunner) -> None:
    try:
        archive = runner.create()
    except BackupError as exc:
        print(f"Backup failed: {exc}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    print(archive)
    failed = runner.last_run.failed_dumps
    if failed:
        for result in failed:
            print(f"Dump of '{result.name}' failed: {result.describe()}", file=sys.stderr)
        sys.exit(EXIT_INCOMPLETE)


def handle_delete_junk(runner: BackupRunner) -> None:
    runner.delete_junk()


def handle_show_config(config: AppConfig) -> None:
    data = config.to_dict()
    for params in data["databases"].values():
        if params.get("password"):
            params["password"] = "***"
    yaml.safe_dump(data, sys.stdout, allow_unicode=True, sort_keys=False, default_flow_style=False)


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return

    configure_logging(args.verbose)
    config = load_application_config(Path(args.config))

    if args.command == "show-config":
        handle_show_config(config)
        return

    runner = BackupRunner(config=config)
    if args.command == "create":
        handle_create(runner)
    elif args.command == "delete-junk":
        handle_delete_junk(runner)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
