"""
Seed the permission catalog and, optionally, a demo company.

The catalog upsert is idempotent. The demo company is only created when
DEMO_OWNER_EMAIL is set and no user with that email exists yet; an existing
owner's password is never overwritten.

Usage:
  python scripts/init_db.py
"""

import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.worklog.models import Company, User  # noqa: E402
from app.worklog.modules.roles.service import create_default_roles, ensure_permission_catalog  # noqa: E402
from app.worklog.permissions import OWNER_ROLE  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def _seed_demo_company(s, owner_email: str) -> bool:
    if s.query(User).filter(User.email == owner_email).one_or_none():
        return False
    company = Company(name=(os.environ.get("DEMO_COMPANY_NAME") or "Demo Company").strip())
    s.add(company)
    s.flush()
    roles = create_default_roles(s, company)
    s.add(
        User(
            company_id=company.id,
            role=roles[OWNER_ROLE],
            email=owner_email,
            password_hash=generate_password_hash(os.environ.get("DEMO_OWNER_PASSWORD") or "change-me-now"),
            first_name="Demo",
            last_name="Owner",
            is_active=True,
            must_change_password=True,
            profile_completed=True,
        )
    )
    return True


def seed_only(*, database_url: str | None = None) -> None:
    db_url = database_url or (os.environ.get("DATABASE_URL") or "sqlite:///worklog.db").strip()
    owner_email = (os.environ.get("DEMO_OWNER_EMAIL") or "").strip().lower()

    with script_session(db_url) as s:
        perms = ensure_permission_catalog(s)
        print(f"Permission catalog ready ({len(perms)} permissions).")
        if owner_email:
            if _seed_demo_company(s, owner_email):
                print(f"Demo company created. Owner email: {owner_email}")
                print("Owner password: (from DEMO_OWNER_PASSWORD)")
            else:
                print(f"Demo owner {owner_email} already exists; left untouched.")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
