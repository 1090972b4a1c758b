"""Run one project's Jira sync in the foreground.

Usage examples:

    python scripts/run_project_sync.py <project-id>
    python scripts/run_project_sync.py <project-id> --full
    python scripts/run_project_sync.py <project-id> --account 5b10ac8d82e05b22cc7d4ef5 --account 557058:abc
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from jirasync.core.config import settings  # noqa: E402
from jirasync.core.exceptions import SyncEngineException  # noqa: E402
from jirasync.core.logging import setup_logging  # noqa: E402
from jirasync.db.session import SessionLocal  # noqa: E402
from jirasync.services.sync_service import trigger_project_sync  # noqa: E402

logger = logging.getLogger("run_project_sync")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a Jira project sync in the foreground")
    parser.add_argument("project_id", help="Local project id (jira_projects.id)")
    parser.add_argument("--full", action="store_true", help="Ignore stored cursors and re-pull everything")
    parser.add_argument(
        "--account",
        action="append",
        dest="accounts",
        default=None,
        help="Sync only this Jira accountId (repeatable); overrides the tracked-user list",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    setup_logging(settings.LOG_LEVEL)
    db = SessionLocal()
    try:
        result = trigger_project_sync(db, args.project_id, full=args.full, account_ids=args.accounts)
    except SyncEngineException as exc:
        logger.error("Sync failed: %s", exc.message)
        print(json.dumps(exc.to_dict(), indent=2, default=str))
        return 1
    finally:
        db.close()

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
