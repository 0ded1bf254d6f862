"""Delete a user with their sessions, linked accounts and audit rows.

Usage:
  python scripts/delete_user.py --email alice@example.com --yes
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from maintenance.tasks import delete_user, open_stores


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    ap.add_argument("--database-url", default=None)
    args = ap.parse_args()

    if not args.yes and input(f"Delete {args.email} and all their data? [y/N] ").lower() != "y":
        print("Aborted")
        return

    with open_stores(args.database_url) as (user_store, audit_store):
        ok = delete_user(user_store, audit_store, args.email)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
