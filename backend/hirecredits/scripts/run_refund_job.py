"""
Run the uncompleted-invitation refund job once (foreground, for ops/debugging).

Usage (from backend/):
  python -m hirecredits.scripts.run_refund_job
  python -m hirecredits.scripts.run_refund_job --dry-run

Uses the same reclaimer as the Celery beat task and the /cron endpoint but runs
in the current process so you see all logs and the final summary.
"""
from __future__ import annotations

import json
import sys

from hirecredits.components.invitations.reclaimer import eligible_invitation_ids, refund_expired_invitations
from hirecredits.platform.database import SessionLocal
from hirecredits.platform.logging import setup_logging
from hirecredits.shared.utils import utcnow


def main() -> None:
    setup_logging()
    dry_run = "--dry-run" in sys.argv[1:]
    if dry_run:
        db = SessionLocal()
        try:
            ids = eligible_invitation_ids(db, utcnow())
        finally:
            db.close()
        print(f"{len(ids)} invitation(s) eligible for refund: {ids}")
        return

    summary = refund_expired_invitations(SessionLocal)
    print("Summary:", json.dumps(summary.as_dict(), indent=2))
    if not summary.ok:
        sys.exit(1)
    if summary.failed_count:
        sys.exit(2)


if __name__ == "__main__":
    main()
