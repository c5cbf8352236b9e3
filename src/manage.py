"""Storefront management CLI.

Schema management plus the queue worker entry points a scheduler (cron,
systemd timer, Kubernetes CronJob) calls without going through HTTP.

Usage:
    python src/manage.py setup-db                       # Create all tables
    python src/manage.py drop-db                        # Drop all tables
    python src/manage.py drain-queue [--aggressive] [--batch-size N]
    python src/manage.py queue-stats
    python src/manage.py cleanup-queue [--days N]
    python src/manage.py release-stale [--minutes N]
"""

import argparse
import json
import sys


def _domain():
    from storefront.domain import storefront
    from storefront.utils.logging import configure_logging

    configure_logging()
    storefront.init()
    return storefront


def setup_databases():
    """Create database schemas for the storefront domain."""
    from storefront.utils.db import setup_db

    domain = _domain()
    print("Creating storefront database schema...")
    count = setup_db(domain)
    print(f"  {count} relational provider(s) ready." if count else "  No relational provider configured.")
    print("Done.")


def drop_databases():
    """Drop database schemas for the storefront domain."""
    from storefront.utils.db import drop_db

    domain = _domain()
    print("Dropping storefront database schema...")
    count = drop_db(domain)
    print(f"  {count} relational provider(s) dropped." if count else "  No relational provider configured.")
    print("Done.")


def drain_queue(batch_size, aggressive):
    from storefront.notification.worker import DrainMode, drain, release_stale_claims

    domain = _domain()
    with domain.domain_context():
        release_stale_claims()
        report = drain(batch_size=batch_size, mode=DrainMode.AGGRESSIVE if aggressive else DrainMode.NORMAL)
    print(json.dumps(report.to_dict()))


def show_queue_stats():
    from storefront.notification.worker import queue_stats

    domain = _domain()
    with domain.domain_context():
        print(json.dumps(queue_stats(), indent=2))


def cleanup_queue(days):
    from storefront.notification.worker import cleanup_sent

    domain = _domain()
    with domain.domain_context():
        deleted = cleanup_sent(older_than_days=days)
    print(f"Deleted {deleted} sent notification(s) older than {days} day(s).")


def release_stale(minutes):
    from storefront.notification.worker import release_stale_claims

    domain = _domain()
    with domain.domain_context():
        released = release_stale_claims(older_than_minutes=minutes)
    print(f"Released {released} stale claim(s).")


def main():
    from storefront.notification.worker import DEFAULT_BATCH_SIZE, SENT_RETENTION_DAYS, STALE_CLAIM_MINUTES

    parser = argparse.ArgumentParser(description="Storefront management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    drain_parser = subparsers.add_parser("drain-queue", help="Deliver pending notifications")
    drain_parser.add_argument("--aggressive", action="store_true", help="Double the batch size (max 100)")
    drain_parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE)

    subparsers.add_parser("queue-stats", help="Print queue depth and recent throughput")

    cleanup_parser = subparsers.add_parser("cleanup-queue", help="Delete old sent notifications")
    cleanup_parser.add_argument("--days", type=int, default=SENT_RETENTION_DAYS)

    release_parser = subparsers.add_parser("release-stale", help="Return abandoned claims to the queue")
    release_parser.add_argument("--minutes", type=int, default=STALE_CLAIM_MINUTES)

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "drain-queue":
        drain_queue(args.batch_size, args.aggressive)
    elif args.command == "queue-stats":
        show_queue_stats()
    elif args.command == "cleanup-queue":
        cleanup_queue(args.days)
    elif args.command == "release-stale":
        release_stale(args.minutes)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
