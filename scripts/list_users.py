"""List every user, newest first.

Usage:
  python scripts/list_users.py [--database-url sqlite:///adpanel.db]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from maintenance.tasks import list_users, open_stores


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--database-url", default=None, help="defaults to DATABASE_URL / Settings")
    args = ap.parse_args()

    with open_stores(args.database_url) as (user_store, _audit_store):
        list_users(user_store)


if __name__ == "__main__":
    main()
