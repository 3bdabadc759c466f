#!/usr/bin/env python3
"""
DRA Compliance Portal Management CLI

Commands for operating the portal outside the web app:
- seed-demo: Insert demo locations, initiatives and compliance items
- notifications: Print the current expiry notifications
- export: Write one resource as CSV
- check-store: Check store connectivity and configuration

Usage:
    python -m tools.manage <command> [options]

Examples:
    python -m tools.manage seed-demo
    python -m tools.manage notifications --today 2026-03-01
    python -m tools.manage notifications --json
    python -m tools.manage export initiatives --output initiatives.csv
"""

import argparse
import json
import os
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def _service():
    from portal.core import PortalService
    from portal.web.shared_store import get_document_store

    return PortalService(get_document_store())


def _today(args) -> date:
    from portal.core.clock import today

    return args.today or today()


def cmd_seed_demo(args):
    """Seed demo data into an empty store."""
    from portal.db.seed import seed_demo
    from portal.db.store import LOCATIONS

    service = _service()
    existing = service.store.count(LOCATIONS)
    if existing > 0 and not args.force:
        print(f"Error: Store already has {existing} locations. Use --force to seed anyway.")
        return 1

    counts = seed_demo(service, _today(args))
    print("[OK] Demo data seeded")
    for collection, count in counts.items():
        print(f"  {collection}: {count}")


def cmd_notifications(args):
    """Print the ranked expiry notifications."""
    today = _today(args)
    notifications = _service().notifications(today)

    if args.json:
        print(json.dumps(
            [n.model_dump(mode="json", by_alias=True) for n in notifications],
            indent=2,
        ))
        return 0

    print(f"Notifications as of {today.isoformat()}: {len(notifications)}\n")
    for n in notifications:
        location = f" @ {n.location_name}" if n.location_name else ""
        print(f"  [{n.severity.value.upper():8}] {n.title}{location}")
        print(f"             {n.message} ({n.expiry_date.isoformat()})")


def cmd_export(args):
    """Export one resource to CSV."""
    from portal.core.export import EXPORTABLE

    if args.resource not in EXPORTABLE:
        print(f"Error: Unknown resource {args.resource}. Valid values: {', '.join(EXPORTABLE)}")
        return 1

    content = _service().export_csv(args.resource, _today(args))

    if args.output:
        with open(args.output, "w", newline="", encoding="utf-8") as f:
            f.write(content)
        rows = max(content.count("\n") - 1, 0)
        print(f"[OK] Exported {rows} {args.resource} to {args.output}")
    else:
        sys.stdout.write(content)


def cmd_check_store(args):
    """Run store connectivity and configuration checks."""
    from portal.db.config import (
        DatabaseConfig,
        DocumentStoreDriver,
        get_database_url,
        get_documentstore_driver,
    )
    from portal.observability import check_health
    from portal.web.shared_store import get_document_store

    db_url = get_database_url()
    driver = get_documentstore_driver()

    print("=== DRA Portal Store Check ===\n")

    print("Database:")
    if driver != DocumentStoreDriver.MEMORY and db_url:
        config = DatabaseConfig.from_url(db_url) if "://" in db_url else DatabaseConfig.from_env()
        print(f"  Type: PostgreSQL ({driver.value})")
        print(f"  Host: {config.host}:{config.port}/{config.database}")
    else:
        print("  Type: In-Memory")

    status = check_health(store=get_document_store())
    store_check = status.checks.get("document_store", {})
    if status.healthy:
        print(f"  Status: [OK] {store_check.get('backend')}")
        for collection, count in store_check.get("documents", {}).items():
            print(f"  {collection}: {count}")
    else:
        print(f"  Status: [FAIL] {store_check.get('error')}")
        return 1

    print("\nEnvironment:")
    session_secret = os.environ.get("PORTAL_SESSION_SECRET", "")
    if len(session_secret) >= 16:
        print("  Session secret: [OK] Set")
    else:
        print("  Session secret: [WARN] Using default (development)")

    zone = os.environ.get("PORTAL_TIMEZONE", "")
    print(f"  Time zone: {zone or 'server local'}")

    print("\n=== Store Check Complete ===")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="DRA Compliance Portal Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    # Shared by every command
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--today",
        type=date.fromisoformat,
        help="Evaluate dates as of this day (YYYY-MM-DD, default: today)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # seed-demo
    p_seed = subparsers.add_parser(
        "seed-demo",
        help="Insert demo data",
        parents=[common],
    )
    p_seed.add_argument("--force", action="store_true", help="Seed even if the store has data")

    # notifications
    p_notify = subparsers.add_parser(
        "notifications",
        help="Print current expiry notifications",
        parents=[common],
    )
    p_notify.add_argument("--json", action="store_true", help="Print as JSON")

    # export
    p_export = subparsers.add_parser(
        "export",
        help="Export a resource as CSV",
        parents=[common],
    )
    p_export.add_argument("resource", help="locations, initiatives, compliance, users or notifications")
    p_export.add_argument("--output", "-o", help="Output file (default: stdout)")

    # check-store
    subparsers.add_parser(
        "check-store",
        help="Check store connectivity and configuration",
        parents=[common],
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "seed-demo": cmd_seed_demo,
        "notifications": cmd_notifications,
        "export": cmd_export,
        "check-store": cmd_check_store,
    }

    return commands[args.command](args) or 0


if __name__ == "__main__":
    sys.exit(main())
