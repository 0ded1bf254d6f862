"""Allow-list the email of every existing user.

Usage:
  python scripts/seed_allowed_emails.py [--database-url ...]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from maintenance.tasks import open_stores, seed_allowed_emails


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--database-url", default=None)
    args = ap.parse_args()

    with open_stores(args.database_url) as (user_store, _audit_store):
        seed_allowed_emails(user_store)


if __name__ == "__main__":
    main()
