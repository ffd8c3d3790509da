"""Maintenance commands for cron jobs and first-time setup.

    asset-tracker sweep-overdue [--as-of YYYY-MM-DD]
    asset-tracker send-reminders [--days N]
    asset-tracker create-user --username U --email E --password P --full-name N [--role R]
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from typing import Optional, Sequence

from pydantic import ValidationError

from .core.config import settings
from .core.enums import Role, values
from .core.errors import AssetTrackerError
from .core.logging import configure_logging
from .crud.common import describe_validation_error
from .crud.users import create_user
from .db.migrate import run_migrations
from .db.session import Base, SessionLocal, engine
from .schemas.user import UserCreate
from .services.borrowing import send_return_reminders, sweep_overdue

from . import models  # noqa: F401


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="asset-tracker", description="IT asset tracker maintenance commands.")
    sub = p.add_subparsers(dest="command", required=True)

    sweep = sub.add_parser("sweep-overdue", help="Mark borrows past their due date as Overdue.")
    sweep.add_argument("--as-of", type=date.fromisoformat, default=None,
                       help="Reference date (default: today in the configured TZ).")

    remind = sub.add_parser("send-reminders", help="Email borrowers whose items are due soon.")
    remind.add_argument("--days", type=int, default=settings.REMINDER_DAYS,
                        help=f"Look-ahead window in days (default: {settings.REMINDER_DAYS}).")

    user = sub.add_parser("create-user", help="Create a user account.")
    user.add_argument("--username", required=True)
    user.add_argument("--email", required=True)
    user.add_argument("--password", required=True)
    user.add_argument("--full-name", required=True)
    user.add_argument("--role", choices=values(Role), default=Role.ADMIN.value)
    user.add_argument("--department", default=None)
    return p.parse_args(argv)


def _run(args: argparse.Namespace) -> dict:
    db = SessionLocal()
    try:
        if args.command == "sweep-overdue":
            return {"updated": sweep_overdue(db, args.as_of)}
        if args.command == "send-reminders":
            return send_return_reminders(db, args.days)
        payload = UserCreate(
            username=args.username,
            email=args.email,
            password=args.password,
            full_name=args.full_name,
            role=args.role,
            department=args.department,
        )
        user = create_user(db, payload.model_dump())
        return {"id": user.id, "username": user.username, "role": user.role}
    finally:
        db.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(settings.LOG_LEVEL)
    Base.metadata.create_all(bind=engine)
    run_migrations(engine)
    try:
        result = _run(args)
    except ValidationError as exc:
        print(f"error: {describe_validation_error(exc)}", file=sys.stderr)
        return 1
    except AssetTrackerError as exc:
        print(f"error: {exc.message} ({exc.code})", file=sys.stderr)
        return 1
    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
