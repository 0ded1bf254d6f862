"""Delete sessions whose user no longer exists and list the remaining ones.

Usage:
  python scripts/clean_sessions.py [--database-url ...]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from maintenance.tasks import clean_sessions, open_stores


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--database-url", default=None)
    args = ap.parse_args()

    with open_stores(args.database_url) as (user_store, _audit_store):
        removed = clean_sessions(user_store)

    print(f"Removed {removed} orphan session(s)")


if __name__ == "__main__":
    main()
