"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the tracker.

- Provides an argparse-based CLI
- Overlays CLI options on the environment configuration
- Validates the result before anything starts

============================================================
USAGE
============================================================
python app.py
python app.py --provider ollama --interval 30
python app.py --single-cycle
python app.py --export backup.json

============================================================
"""

import argparse
import sys
from typing import List, Optional

from core.config import TrackerConfig
from core.constants import SYSTEM_NAME, SYSTEM_VERSION
from core.exceptions import InvalidConfigError
from core.models import ProviderKind


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=SYSTEM_NAME,
        description="Political sentiment tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run until interrupted
  %(prog)s --single-cycle               # Backfill, fetch once, exit
  %(prog)s --import backup.json         # Replace stored data, then run
  %(prog)s --export backup.json         # Write all data and exit
        """
    )

    # --------------------------------------------------------
    # Execution Options
    # --------------------------------------------------------
    execution_group = parser.add_argument_group("Execution Options")

    execution_group.add_argument(
        "--provider",
        type=str,
        choices=[kind.value for kind in ProviderKind],
        help="Provider backend (overrides TRACKER_PROVIDER)",
    )

    execution_group.add_argument(
        "--interval",
        type=int,
        metavar="MINUTES",
        help="Scheduled fetch interval in minutes",
    )

    execution_group.add_argument(
        "--single-cycle",
        action="store_true",
        help="Backfill history, run one fetch cycle and exit",
    )

    execution_group.add_argument(
        "--no-backfill",
        action="store_true",
        help="Skip the startup history backfill",
    )

    # --------------------------------------------------------
    # Storage Options
    # --------------------------------------------------------
    storage_group = parser.add_argument_group("Storage Options")

    storage_group.add_argument(
        "--database-url",
        type=str,
        help="SQLAlchemy URL of the primary tier",
    )

    storage_group.add_argument(
        "--legacy-path",
        type=str,
        help="Path of the legacy JSON file",
    )

    storage_group.add_argument(
        "--export",
        type=str,
        metavar="PATH",
        dest="export_path",
        help="Export all data to PATH and exit",
    )

    storage_group.add_argument(
        "--import",
        type=str,
        metavar="PATH",
        dest="import_path",
        help="Import data from PATH before starting",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides TRACKER_LOG_LEVEL)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Log format (overrides TRACKER_LOG_FORMAT)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {SYSTEM_VERSION}",
    )

    return parser


# ============================================================
# ARGUMENT VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """Validate CLI arguments. Returns a list of errors."""
    errors = []

    if args.interval is not None and args.interval < 1:
        errors.append("--interval must be at least 1 minute")

    if args.export_path and args.import_path:
        errors.append("--export and --import cannot be combined")

    if args.export_path and args.single_cycle:
        errors.append("--export and --single-cycle cannot be combined")

    return errors


# ============================================================
# CONFIGURATION BUILDER
# ============================================================

def build_config(
    args: argparse.Namespace,
    base: Optional[TrackerConfig] = None,
) -> TrackerConfig:
    """Overlay CLI options on the environment configuration."""
    config = base or TrackerConfig.from_env()

    if args.provider:
        config.provider.provider = ProviderKind(args.provider)
    if args.interval is not None:
        config.fetch_interval_minutes = args.interval
    if args.database_url:
        config.database_url = args.database_url
    if args.legacy_path:
        config.legacy_path = args.legacy_path
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    return config


# ============================================================
# MAIN
# ============================================================

def parse(argv: Optional[List[str]] = None) -> Optional[tuple[argparse.Namespace, TrackerConfig]]:
    """
    Parse and validate arguments.

    Returns None (after printing the errors) when anything is invalid.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return None

    try:
        config = build_config(args)
    except InvalidConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return None

    return args, config


def print_banner(args: argparse.Namespace, config: TrackerConfig) -> None:
    """Print startup banner."""
    print(f"""
============================================================
  {SYSTEM_NAME} v{SYSTEM_VERSION}
============================================================
  Provider:      {config.provider.provider.value}
  Interval:      {config.fetch_interval_minutes}m
  Database:      {config.database_url}
  Legacy file:   {config.legacy_path}
  Single cycle:  {args.single_cycle}
============================================================
""")
