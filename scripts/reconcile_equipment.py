"""
Report and repair drift between equipment custody fields and responsibility terms.

Usage:
    python scripts/reconcile_equipment.py           # dry run, report only
    python scripts/reconcile_equipment.py --apply   # apply the fixes
"""

import argparse
import asyncio
import logging
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.core.config import get_settings
from app.core.logging import setup_logging
from app.db.session import SessionLocal
from app.services.inventory import InventoryService

logger = logging.getLogger(__name__)


async def reconcile(apply: bool) -> int:
    async with SessionLocal() as session:
        result = await InventoryService().reconcile(session, dry_run=not apply)
        if apply:
            await session.commit()

    for issue in result["issues"]:
        logger.info("Drift found", extra=issue)
    logger.info(
        "Reconciliation finished",
        extra={"issues": len(result["issues"]), "fixed": result["fixed"], "dry_run": result["dry_run"]},
    )
    return len(result["issues"])


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--apply", action="store_true", help="apply the fixes instead of only reporting")
    args = parser.parse_args()

    setup_logging(get_settings().LOG_LEVEL)
    issues = asyncio.run(reconcile(args.apply))
    # Non-zero exit on a dry run with drift, for cron alerting
    sys.exit(1 if issues and not args.apply else 0)


if __name__ == "__main__":
    main()
