"""Add emails to the registration allow-list.

Usage:
  python scripts/add_allowed_emails.py alice@example.com bob@example.com --note "Added by admin"
  python scripts/add_allowed_emails.py --file emails.txt

Emails are lower-cased and trimmed. Already-listed emails are left alone.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from maintenance.tasks import add_allowed_emails, open_stores


def _read_file(path: str) -> list[str]:
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.startswith("#")]


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("emails", nargs="*")
    ap.add_argument("--file", help="one email per line; # starts a comment")
    ap.add_argument("--note", default="Added by admin")
    ap.add_argument("--created-by", default="admin")
    ap.add_argument("--database-url", default=None)
    args = ap.parse_args()

    emails = list(args.emails)
    if args.file:
        emails.extend(_read_file(args.file))
    if not emails:
        ap.error("give at least one email or --file")

    with open_stores(args.database_url) as (user_store, _audit_store):
        result = add_allowed_emails(user_store, emails, note=args.note, created_by=args.created_by)

    if result.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
