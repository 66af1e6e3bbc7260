"""DeepWork insights entry point.

Usage:
    python -m deepwork [OPTIONS] COMMAND

Commands:
    generate TYPE       Generate (or fetch cached) insight
    refresh-check TYPE  Report whether the cached insight is due for refresh
    purge               Delete cached insights past the retention window
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import DeepWorkConfig
from .config.loader import load_config
from .config.profiles import detect_profile
from .factory import create_orchestrator, create_storage
from .insights.errors import UnknownInsightTypeError

# Load .env from the project root (parent of src/), else the working directory
_env_file = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_file if _env_file.exists() else None)


def setup_logging(level: str, fmt: str) -> None:
    """Configure logging based on config."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="deepwork",
        description="DeepWork insights - natural-language summaries of focus sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m deepwork generate daily
  python -m deepwork generate weekly --force
  python -m deepwork generate activity_coding_week
  python -m deepwork --profile prod purge --older-than-days 30

Environment:
  ANTHROPIC_API_KEY   API key for insight generation
  DEEPWORK_PROFILE    Set profile (dev, prod, test)
""",
    )
    parser.add_argument("--config", type=Path, help="Path to YAML config file", metavar="PATH")
    parser.add_argument(
        "--profile",
        choices=["dev", "prod", "test"],
        help="Configuration profile to use",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"DeepWork insights v{__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate an insight")
    generate.add_argument("insight_type", help="daily, weekly, monthly or activity_<id>_week")
    generate.add_argument("--activity", help="Only include sessions of this activity")
    generate.add_argument(
        "--reference",
        type=datetime.fromisoformat,
        help="ISO-8601 instant to generate for (defaults to now)",
    )
    generate.add_argument("--force", action="store_true", help="Bypass the cache")

    refresh = subparsers.add_parser(
        "refresh-check", help="Check whether a cached insight should be refreshed"
    )
    refresh.add_argument("insight_type")
    refresh.add_argument("--activity")

    purge = subparsers.add_parser("purge", help="Delete old cached insights")
    purge.add_argument(
        "--older-than-days",
        type=int,
        default=None,
        help="Retention in days (defaults to insights.retention_days)",
    )

    return parser.parse_args(argv)


def _load(args: argparse.Namespace) -> DeepWorkConfig:
    if args.config:
        return load_config(path=args.config)
    return load_config(profile=args.profile or detect_profile().value)


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = parse_args(argv)

    try:
        config = _load(args)
    except FileNotFoundError as e:
        print(f"Error: Config file not found: {e}", file=sys.stderr)
        return 1
    except (TypeError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging.level, config.logging.format)
    logger = logging.getLogger("deepwork")
    logger.debug("DeepWork insights v%s", __version__)

    with create_storage(config) as storage:
        orchestrator = create_orchestrator(config, storage.sessions, storage.insight_cache)

        if args.command == "generate":
            try:
                result = orchestrator.generate(
                    args.insight_type,
                    reference=args.reference,
                    activity_type=args.activity,
                    force_regenerate=args.force,
                )
            except UnknownInsightTypeError as e:
                logger.error("%s", e)
                return 2
            print(json.dumps(result.to_dict(), indent=2))
            return 0 if result.success else 1

        if args.command == "refresh-check":
            try:
                due = orchestrator.needs_background_refresh(
                    args.insight_type, activity_type=args.activity
                )
            except UnknownInsightTypeError as e:
                logger.error("%s", e)
                return 2
            print("refresh" if due else "fresh")
            return 0

        days = args.older_than_days
        if days is None:
            days = config.insights.retention_days
        deleted = orchestrator.purge_cache(timedelta(days=days))
        print(f"Deleted {deleted} cached insights")
        return 0


if __name__ == "__main__":
    sys.exit(main())
