"""Remove one permission flag from a user.

Usage:
  python scripts/remove_permission.py --email alice@example.com --permission view_admin
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from maintenance.tasks import open_stores, remove_permission


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--permission", required=True)
    ap.add_argument("--database-url", default=None)
    args = ap.parse_args()

    with open_stores(args.database_url) as (user_store, _audit_store):
        remove_permission(user_store, args.email, args.permission)


if __name__ == "__main__":
    main()
