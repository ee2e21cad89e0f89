from __future__ import annotations

import argparse
import getpass

from portal.accounts import ADMIN_ROLES, create_admin
from portal.db import Base, SessionLocal, engine
from portal.errors import PortalError


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an admin account for the ordering portal.")
    parser.add_argument("email")
    parser.add_argument("--name", required=True)
    parser.add_argument("--role", default="admin", choices=ADMIN_ROLES)
    parser.add_argument("--password", help="prompted for when omitted")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = create_admin(db, args.email, password, args.name, args.role)
    except PortalError as e:
        raise SystemExit(f"FAILED  {args.email}: {e.message}")
    finally:
        db.close()

    print(f"OK  {admin.email}  ({admin.role}, id={admin.id})")


if __name__ == "__main__":
    main()
