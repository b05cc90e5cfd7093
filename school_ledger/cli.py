"""CLI commands for scheduled management tasks."""

import asyncio
import logging
import sys
from datetime import date

from school_ledger.core.config import settings
from school_ledger.core.database import async_session_maker
from school_ledger.services import ledger as ledger_service
from school_ledger.services import outreach as outreach_service

USAGE = """Usage: python -m school_ledger.cli <command>
Commands:
  refresh-overdue                 Mark students past the payment window as OVERDUE
  schedule-calls [YYYY-MM-DD]     Book outreach calls for the day's candidates"""


async def refresh_overdue() -> None:
    """Apply the overdue rule to students who aged past it without a payment."""
    async with async_session_maker() as db:
        count = await ledger_service.refresh_overdue_statuses(db)

    print(f"✓ {count} student(s) now OVERDUE")


async def schedule_calls(scheduled_date: date | None) -> None:
    """Book the day's outreach calls."""
    async with async_session_maker() as db:
        result = await outreach_service.schedule_calls(db, scheduled_date=scheduled_date, created_by="cli")

    print(f"✓ Scheduled {len(result.calls)} call(s), {result.skipped} student(s) already had an open call")
    for call in result.calls:
        print(f"  {call.priority.value:<6} {call.call_type.value:<10} {call.student_id}")


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(level=settings.LOG_LEVEL)

    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "refresh-overdue":
        asyncio.run(refresh_overdue())
    elif command == "schedule-calls":
        if len(sys.argv) > 3:
            print("Usage: python -m school_ledger.cli schedule-calls [YYYY-MM-DD]")
            sys.exit(1)

        scheduled_date = None
        if len(sys.argv) == 3:
            try:
                scheduled_date = date.fromisoformat(sys.argv[2])
            except ValueError:
                print(f"Error: invalid date {sys.argv[2]!r}, expected YYYY-MM-DD")
                sys.exit(1)

        asyncio.run(schedule_calls(scheduled_date))
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
