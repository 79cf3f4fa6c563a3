"""Scheduled monitoring entry point.

Run once per scheduler tick (every 5 minutes in production):

    */5 * * * * python -m thundercloud.monitoring.run --users users.json

Usage:
    python -m thundercloud.monitoring.run --users users.json           # Alert pass
    python -m thundercloud.monitoring.run --users users.json --cache   # Cache pass
    python -m thundercloud.monitoring.run --cleanup                    # Drop expired cache rows
    python -m thundercloud.monitoring.run --status                     # Show cache status
"""

import argparse
import logging
import sys
from pathlib import Path

from thundercloud.cache.cleanup import drain_expired
from thundercloud.config import DEFAULT_DB_PATH, MonitorConfig
from thundercloud.monitoring.notifier import LoggingNotifier, WebhookNotifier
from thundercloud.monitoring.orchestrator import build_orchestrator
from thundercloud.monitoring.users import InMemoryUserStore, JsonUserStore
from thundercloud.utils.io import get_data_path

logger = logging.getLogger(__name__)


def default_users_path() -> Path:
    """User file read when --users is not given."""
    return get_data_path("users") / "users.json"


def print_status(stats: dict, fetches: list) -> None:
    """Print cache status in human-readable format."""
    print()
    print("=" * 60)
    print("Thundercloud Cache Status")
    print("=" * 60)
    print(f"Database: {stats['db_path']}")
    print(f"Sample entries: {stats['total_entries']}")
    print(f"  fresh (< {stats['ttl_seconds']}s): {stats['fresh_entries']}")
    print(f"  last hour: {stats['recent_entries']}")
    print(f"  expired (> {stats['retention_hours']:g}h): {stats['stale_entries']}")
    print(f"Directional reports: {stats['directional_entries']}")
    print()
    print("Recent fetches:")
    print("-" * 60)
    if not fetches:
        print("  (none)")
    for entry in fetches:
        print(
            f"  {entry.timestamp:%Y-%m-%d %H:%M:%S}  {entry.source:<20} "
            f"{entry.status:<8} {entry.records_added:>5} points  {entry.duration_ms}ms"
        )
    print("=" * 60)


def main(argv=None):
    """CLI entry point for monitoring passes."""
    parser = argparse.ArgumentParser(
        description="Run a thundercloud monitoring pass",
        epilog="""
Examples:
  python -m thundercloud.monitoring.run --users users.json
  python -m thundercloud.monitoring.run --users users.json --cache
  python -m thundercloud.monitoring.run --cleanup

Settings not given on the command line are read from THUNDERCLOUD_*
environment variables (see thundercloud.config).
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--alert",
        action="store_true",
        help="Check users and send alerts (default)",
    )
    mode.add_argument(
        "--cache",
        action="store_true",
        help="Fetch weather for all users and store directional reports",
    )
    mode.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete cache entries older than the retention window",
    )
    mode.add_argument(
        "--status",
        action="store_true",
        help="Show current cache status",
    )
    parser.add_argument(
        "--users",
        type=Path,
        default=None,
        help="JSON file with user locations (default: data/users/users.json)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Database path (default: {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "--webhook-url",
        default=None,
        help="POST alerts to this URL instead of logging them",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    args = parser.parse_args(argv)

    if args.quiet:
        level = logging.ERROR
    elif args.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    users_path = args.users or default_users_path()
    if users_path.exists():
        user_store = JsonUserStore(users_path)
    else:
        user_store = InMemoryUserStore()
        if not (args.cleanup or args.status):
            logger.warning(f"User file {users_path} not found, monitoring pass will have no users")

    notifier = WebhookNotifier(args.webhook_url) if args.webhook_url else LoggingNotifier()

    try:
        config = MonitorConfig.from_env()
        if args.db:
            config = config.with_overrides(db_path=args.db)
        orchestrator = build_orchestrator(config, user_store=user_store, notifier=notifier)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        if args.status:
            print_status(
                orchestrator.cache.stats(),
                orchestrator.cache.db.get_recent_fetches(),
            )
            return 0

        if args.cleanup:
            drain_expired(orchestrator.cache)
            return 0

        if args.cache:
            result = orchestrator.run_cache_pass()
        else:
            result = orchestrator.run_alert_pass()

        return 1 if result.has_failures else 0

    except Exception as e:
        logger.error(f"Monitoring run failed: {e}")
        return 1

    finally:
        orchestrator.close()


if __name__ == "__main__":
    sys.exit(main())
