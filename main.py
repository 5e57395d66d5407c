#!/usr/bin/env python3
"""
DB Janitor entry point.

This script shrinks the configured tables of a live database, writes a
sanitized SQL dump, and restores the original tables. With --recover it
only restores tables left parked by an earlier interrupted run.
"""

import argparse
import logging
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

from db_janitor.config import JanitorConfig
from db_janitor.exceptions import (
    ConfigurationError,
    ConnectionFailedError,
    ExportError,
    ManifestError,
)
from db_janitor.janitor import DatabaseJanitor
from db_janitor.models import ShrinkReport


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Sanitized database snapshots")

    parser.add_argument(
        "--config",
        help="Path to configuration file"
    )

    parser.add_argument(
        "--output",
        help="Dump destination, '-' for standard output (default: from config)"
    )

    parser.add_argument(
        "--manifest",
        help="File recording parked tables until cleanup"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level"
    )

    parser.add_argument(
        "--no-shrink",
        action="store_true",
        help="Export without trimming or scrubbing any table"
    )

    parser.add_argument(
        "--keep-shrunk",
        action="store_true",
        help="After export, keep the shrunk tables and drop the originals"
    )

    parser.add_argument(
        "--recover",
        action="store_true",
        help="Restore tables recorded in the manifest by an interrupted run, then exit"
    )

    parser.add_argument(
        "--from-scan",
        action="store_true",
        help="With --recover, also restore original_* tables found without a manifest"
    )

    return parser.parse_args(argv)


def configure(args: argparse.Namespace) -> None:
    """Initialize configuration from file, secrets, environment, and flags."""
    JanitorConfig.initialize(args.config)

    # Look for secrets file in standard location
    secrets_file = os.path.join(os.getcwd(), ".secrets", "janitor.yaml")
    JanitorConfig.load_from_secrets_file(secrets_file)

    if args.output:
        JanitorConfig.set("output", args.output)
    if args.manifest:
        JanitorConfig.set("manifest_path", args.manifest)
    if args.log_level:
        JanitorConfig.set("log_level", args.log_level)

    logging.basicConfig(
        level=JanitorConfig.get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def recover(janitor: DatabaseJanitor, keep_shrunk: bool, from_scan: bool = False) -> int:
    """
    Restore tables recorded in the manifest.

    Without manifest records, ``original_*`` tables found in the schema are
    only listed unless ``from_scan`` is set, since a real table may share
    the prefix.
    """
    records = janitor.pending()
    if not records:
        records = janitor.find_orphans()
        if not records:
            print("Nothing to recover", file=sys.stderr)
            return 0
        if not from_scan:
            print(
                f"Found parked tables with no manifest: "
                f"{', '.join(record.alias for record in records)}",
                file=sys.stderr,
            )
            print("Check them, then rerun with --recover --from-scan to restore", file=sys.stderr)
            return 1

    print(f"Recovering: {', '.join(record.table for record in records)}", file=sys.stderr)
    return 0 if janitor.cleanup(records, keep_shrunk=keep_shrunk) else 1


def run(janitor: DatabaseJanitor, args: argparse.Namespace) -> int:
    """Shrink, export, and clean up. Returns the process exit status."""
    records = []
    if not args.no_shrink:
        report = ShrinkReport()
        records = janitor.shrink(report)
        print(report.summary(), file=sys.stderr)

    exit_code = 0
    try:
        janitor.export(JanitorConfig.get_output())
    except ExportError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        exit_code = 1
    finally:
        # The schema must be restored whether or not the export succeeded
        if records and not janitor.cleanup(records, keep_shrunk=args.keep_shrunk):
            print("ERROR: cleanup incomplete; rerun with --recover", file=sys.stderr)
            exit_code = 1

    return exit_code


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the DB Janitor."""
    args = parse_args(argv)

    try:
        configure(args)
        janitor = DatabaseJanitor.from_config()
    except (ConfigurationError, ConnectionFailedError, ManifestError) as e:
        print(f"CRITICAL: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.recover:
            exit_code = recover(janitor, args.keep_shrunk, args.from_scan)
        else:
            exit_code = run(janitor, args)
    except ManifestError as e:
        print(f"CRITICAL: {e}", file=sys.stderr)
        exit_code = 1
    except SQLAlchemyError as e:
        print(f"CRITICAL: {e}", file=sys.stderr)
        print("Tables may still be parked; rerun with --recover", file=sys.stderr)
        exit_code = 1
    finally:
        janitor.close()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
