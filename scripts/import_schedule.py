#!/usr/bin/env python3
"""
Bulk import of yacht owners and their trip schedule.

- Owners CSV columns: name,email,phone. New owners get their phone digits as
  a temporary password (a generated one, printed here, when the number is too
  short) and must change it on first sign-in.
- Trips CSV columns: check_on,check_off,owner_email (dates as YYYY-MM-DD).
  Trips start and end at 10:00 in APP_TIMEZONE.
- Rows that already exist are skipped, so the import can be re-run.

Usage:
  ./venv/bin/python scripts/import_schedule.py --yacht "UTOPIA" --owners owners.csv --trips trips.csv
"""

from __future__ import annotations

import argparse
import csv
import secrets
from datetime import date, datetime, time, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

from yachtdesk import create_app
from yachtdesk.extensions import bcrypt, db
from yachtdesk.models import User, Yacht, YachtBooking
from yachtdesk.services.auth_service import MIN_PASSWORD_LENGTH

TRIP_HOUR = time(10, 0)


def initial_password(phone: str) -> tuple[str, bool]:
    """Phone digits when long enough to sign in with, otherwise a generated password."""
    digits = "".join(ch for ch in phone or "" if ch.isdigit())
    if len(digits) >= MIN_PASSWORD_LENGTH:
        return digits, False
    return secrets.token_urlsafe(12), True


def read_rows(path: Path) -> list[dict]:
    with path.open(newline="", encoding="utf-8") as handle:
        return [{key.strip(): (value or "").strip() for key, value in row.items()} for row in csv.DictReader(handle)]


def import_owners(yacht: Yacht, rows: list[dict]) -> int:
    created = 0
    for row in rows:
        email = row.get("email", "").lower()
        if not email:
            print(f"Skipped owner without email: {row}")
            continue
        if User.query.filter_by(email=email).first():
            continue
        first_name, _, last_name = row.get("name", "").partition(" ")
        password, generated = initial_password(row.get("phone", ""))
        db.session.add(
            User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                phone=row.get("phone") or None,
                role="owner",
                yacht_id=yacht.id,
                password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
                must_change_password=True,
            )
        )
        if generated:
            print(f"Generated temporary password for {email}: {password}")
        created += 1
    db.session.commit()
    return created


def import_trips(yacht: Yacht, rows: list[dict], tz: ZoneInfo) -> int:
    created = 0
    for row in rows:
        owner = User.query.filter_by(email=row.get("owner_email", "").lower(), yacht_id=yacht.id).first()
        if not owner:
            print(f"Skipped trip for unknown owner: {row.get('owner_email')}")
            continue
        start = datetime.combine(date.fromisoformat(row["check_on"]), TRIP_HOUR, tzinfo=tz).astimezone(timezone.utc)
        end = datetime.combine(date.fromisoformat(row["check_off"]), TRIP_HOUR, tzinfo=tz).astimezone(timezone.utc)
        exists = YachtBooking.query.filter_by(yacht_id=yacht.id, user_id=owner.id, start_date=start).first()
        if exists:
            continue
        db.session.add(
            YachtBooking(
                yacht_id=yacht.id,
                user_id=owner.id,
                start_date=start,
                end_date=end,
                departure_time=TRIP_HOUR.strftime("%H:%M"),
                arrival_time=TRIP_HOUR.strftime("%H:%M"),
            )
        )
        created += 1
    db.session.commit()
    return created


def run(yacht_name: str, owners_csv: Path | None, trips_csv: Path | None) -> None:
    app = create_app()
    with app.app_context():
        yacht = Yacht.query.filter_by(name=yacht_name).first()
        if not yacht:
            raise SystemExit(f"Yacht not found: {yacht_name}")
        tz = ZoneInfo(app.config["APP_TIMEZONE"])
        if owners_csv:
            print(f"Owners created: {import_owners(yacht, read_rows(owners_csv))}")
        if trips_csv:
            print(f"Trips created: {import_trips(yacht, read_rows(trips_csv), tz)}")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--yacht", required=True, help="Name of the yacht to import into")
    parser.add_argument("--owners", type=Path, help="CSV of owners (name,email,phone)")
    parser.add_argument("--trips", type=Path, help="CSV of trips (check_on,check_off,owner_email)")
    args = parser.parse_args()
    run(args.yacht, args.owners, args.trips)


if __name__ == "__main__":
    main()
