#!/usr/bin/env python
# backend/lessonbook/commands/lesson_maintenance.py
"""
Maintenance sweeps for the lesson scheduling core.

The core has no scheduler of its own; cron (or any job runner) invokes
these commands periodically.

Usage:
    python -m lessonbook.commands.lesson_maintenance complete-timeouts
    python -m lessonbook.commands.lesson_maintenance expire-packages
"""

import argparse
import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from lessonbook.core.config import settings
from lessonbook.core.exceptions import DomainException
from lessonbook.database import SessionLocal, with_db_retry
from lessonbook.events.lesson_events import unregister_listener
from lessonbook.schemas.lesson import TimeoutSweepResult
from lessonbook.services.hour_ledger_service import HourLedgerService
from lessonbook.services.lesson_status_service import LessonStatusService
from lessonbook.services.tutor_statistics_service import register_statistics_listener

logger = logging.getLogger(__name__)


class LessonMaintenanceCommand:
    """Maintenance command handler."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self.session_factory = session_factory

    def complete_timeouts(self) -> Dict[str, Any]:
        """Complete in-progress lessons that ran past their abandon window."""
        logger.info("Checking for timed-out lessons")
        result = with_db_retry("complete_timeouts", self._run_timeout_sweep)
        logger.info(f"Completed {result.completed} of {result.processed} timed-out lessons")
        return {"status": "success" if not result.errors else "partial", **result.model_dump()}

    def expire_packages(self) -> Dict[str, Any]:
        """Deactivate package assignments past their expiry."""
        logger.info("Deactivating expired package assignments")
        count = with_db_retry("expire_packages", self._deactivate_expired)
        logger.info(f"Deactivated {count} package assignments")
        return {"status": "success", "deactivated": count}

    def _run_timeout_sweep(self) -> TimeoutSweepResult:
        db = self.session_factory()
        try:
            return LessonStatusService(db).complete_timed_out_lessons()
        finally:
            db.close()

    def _deactivate_expired(self) -> int:
        db = self.session_factory()
        try:
            return HourLedgerService(db).deactivate_expired()
        finally:
            db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Lesson scheduling maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m lessonbook.commands.lesson_maintenance complete-timeouts
  python -m lessonbook.commands.lesson_maintenance expire-packages
        """,
    )
    parser.add_argument(
        "--log-level", default=settings.log_level, help="Log level (default: from settings)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.add_parser("complete-timeouts", help="Complete timed-out in-progress lessons")
    subparsers.add_parser("expire-packages", help="Deactivate expired package assignments")
    return parser


def main(
    argv: Optional[List[str]] = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    listener = register_statistics_listener(session_factory)
    cmd = LessonMaintenanceCommand(session_factory)
    try:
        if args.command == "complete-timeouts":
            result = cmd.complete_timeouts()
        else:
            result = cmd.expire_packages()
    except DomainException as exc:
        logger.error(f"{args.command} failed: {exc.message}", exc_info=True)
        print(json.dumps({"status": "failed", "error": exc.message, "code": exc.code}))
        return 1
    finally:
        unregister_listener(listener)

    print(json.dumps(result, indent=2, default=str))
    return 0 if result["status"] == "success" else 2


if __name__ == "__main__":
    sys.exit(main())
