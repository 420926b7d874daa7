"""Create the initial portal administrator from ADMIN_EMAIL / ADMIN_PASSWORD."""
import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import PROJECT_ROOT
from app.database import MIN_PASSWORD_LEN, Database


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the election portal admin account")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to DATABASE_PATH or data/portal.sqlite3)",
    )
    return parser.parse_args(argv)


def resolve_db_path(cli_value: str | None) -> Path:
    raw = Path(cli_value or os.getenv("DATABASE_PATH") or "data/portal.sqlite3")
    return raw if raw.is_absolute() else (PROJECT_ROOT / raw)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    email = (os.getenv("ADMIN_EMAIL") or "").strip()
    password = os.getenv("ADMIN_PASSWORD") or ""
    if not email or not password:
        print("Error: ADMIN_EMAIL and ADMIN_PASSWORD must be set", file=sys.stderr)
        return 1
    if len(password) < MIN_PASSWORD_LEN:
        print(f"Error: ADMIN_PASSWORD must be at least {MIN_PASSWORD_LEN} characters", file=sys.stderr)
        return 1

    database = Database(resolve_db_path(args.db_path))
    database.initialize()

    existing = database.get_admin_by_email(email)
    if existing is not None:
        print(f"Admin with email {existing.email!r} already exists; leaving it untouched.")
        return 0

    admin = database.create_admin(email, password)
    print(f"Created admin #{admin.id}: {admin.email} ({admin.role})")
    print("Change the password after first login.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
