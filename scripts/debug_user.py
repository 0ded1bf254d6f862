"""Show a user's record, linked accounts and sessions.

Usage:
  python scripts/debug_user.py --email alice@example.com
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from maintenance.tasks import debug_user, open_stores


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--database-url", default=None)
    args = ap.parse_args()

    with open_stores(args.database_url) as (user_store, _audit_store):
        debug_user(user_store, args.email)


if __name__ == "__main__":
    main()
