"""Set a user's password.

Usage:
  python scripts/set_user_password.py --email alice@example.com
  python scripts/set_user_password.py --email alice@example.com --password '...'

Without --password the new password is prompted for (not echoed).
"""

import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from maintenance.tasks import open_stores, set_user_password


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", default=None)
    ap.add_argument("--database-url", default=None)
    args = ap.parse_args()

    password = args.password
    if password is None:
        password = getpass.getpass("New password: ")
        if password != getpass.getpass("Repeat password: "):
            print("Passwords do not match")
            sys.exit(1)

    with open_stores(args.database_url) as (user_store, _audit_store):
        ok = set_user_password(user_store, args.email, password)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
