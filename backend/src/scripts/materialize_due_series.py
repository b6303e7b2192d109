#!/usr/bin/env python3
"""
Materialize the next instance of every due recurring series.

Meant to be run by an external scheduler (cron, systemd timer). A series is
due when it is active, below its instance cap, before its end date, and its
latest instance has ended.

Usage:
    python -m backend.src.scripts.materialize_due_series [--dry-run] [--skip-summaries]

Options:
    --dry-run           List due series without creating instances
    --skip-summaries    Do not generate AI summaries for created instances
    --help              Show this help message

Examples:
    # Hourly cron entry
    0 * * * * cd /srv/volunteer-hub && python -m backend.src.scripts.materialize_due_series
"""

import argparse
import signal
import sys
from typing import Callable, List, Optional

from sqlalchemy.orm import Session


def signal_handler(signum, frame):
    """Handle CTRL+C gracefully."""
    print("\n\nOperation interrupted by user.")
    sys.exit(130)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Materialize the next instance of every due recurring series.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --dry-run

Notes:
  - Safe to run repeatedly; a series is only materialized once its latest
    instance has ended
  - Concurrent runs cannot create duplicate instance numbers
        """
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List due series without creating instances"
    )
    parser.add_argument(
        "--skip-summaries",
        action="store_true",
        help="Do not generate AI summaries for created instances"
    )

    return parser.parse_args(argv)


def materialize_due_series(
    dry_run: bool = False,
    skip_summaries: bool = False,
    session_factory: Optional[Callable[[], Session]] = None,
) -> List[str]:
    """
    Materialize due series.

    Args:
        dry_run: If True, only report due series
        skip_summaries: If True, created instances get no AI summary
        session_factory: Session factory (defaults to SessionLocal)

    Returns:
        GUIDs of created instances, or of due series when dry_run is set
    """
    # Import here to avoid loading database during argument parsing
    from backend.src.db.database import SessionLocal
    from backend.src.models import RecurringSeries
    from backend.src.models.recurring_series import SeriesStatus
    from backend.src.services.recurrence import should_create_next_instance
    from backend.src.services.recurring_series_service import RecurringSeriesService
    from backend.src.services.summary_service import (
        InlineSummaryDispatcher,
        SummaryDispatcher,
    )

    session_factory = session_factory or SessionLocal
    dispatcher = SummaryDispatcher() if skip_summaries else InlineSummaryDispatcher(session_factory)

    db = session_factory()
    try:
        service = RecurringSeriesService(db, dispatcher)

        if dry_run:
            due = []
            series_list = (
                db.query(RecurringSeries)
                .filter(RecurringSeries.status == SeriesStatus.ACTIVE.value)
                .order_by(RecurringSeries.id)
                .all()
            )
            for series in series_list:
                last_event = service.get_last_instance(series)
                if last_event is not None and should_create_next_instance(series, last_event):
                    due.append(series.guid)
                    print(f"[DUE] {series.guid}  {series.title}  (after #{last_event.recurring_instance_number})")
            print(f"\n[DRY RUN] {len(due)} series due. No changes made.")
            return due

        created = service.materialize_due()
        for event in created:
            print(f"[CREATED] {event.guid}  instance #{event.recurring_instance_number}  {event.start_datetime:%Y-%m-%d %H:%M}")
        print(f"\n{len(created)} instance(s) created.")
        return [event.guid for event in created]
    finally:
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    args = parse_args(argv)

    print("=" * 50)
    print("Volunteer Hub: Materialize Due Series")
    print("=" * 50)

    try:
        materialize_due_series(dry_run=args.dry_run, skip_summaries=args.skip_summaries)
    except Exception as e:
        print(f"\n[ERROR] Unexpected error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
