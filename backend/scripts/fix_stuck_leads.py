"""
Find (and optionally repair) stuck campaign leads.

A lead is stuck when it is due (pending / ready_for_action) but its campaign has
no sequence step at its current_step, so the scheduler can never pick it up.

Usage (from backend/):
    python scripts/fix_stuck_leads.py                       # report only
    python scripts/fix_stuck_leads.py --campaign-id 12
    python scripts/fix_stuck_leads.py --action complete
    python scripts/fix_stuck_leads.py --action remove
    python scripts/fix_stuck_leads.py --action create_sequences
"""
import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add the backend directory to Python path so the app package imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.shared.core.logging import setup_logging, set_correlation_id  # noqa: E402
from app.shared.db.session import AsyncSessionLocal, engine  # noqa: E402
from app.modules.campaign_outreach.constants import StuckLeadAction  # noqa: E402
from app.modules.campaign_outreach.services.stuck_lead_service import StuckLeadService  # noqa: E402

logger = logging.getLogger("fix_stuck_leads")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Report or repair stuck campaign leads")
    parser.add_argument(
        "--action",
        choices=[action.value for action in StuckLeadAction],
        default=None,
        help="Resolution to apply. Omit to only report."
    )
    parser.add_argument("--campaign-id", type=int, default=None, help="Limit to one campaign")
    return parser.parse_args(argv)


async def run(action, campaign_id) -> int:
    set_correlation_id(prefix="cli")
    try:
        async with AsyncSessionLocal() as db:
            service = StuckLeadService(db)
            stuck = await service.find_stuck_leads(campaign_id)

            logger.info(f"Found {len(stuck)} stuck lead(s)")
            for row in stuck:
                logger.info(
                    f"  campaign={row['campaign_id']} lead={row['lead_id']} "
                    f"status={row['status']} current_step={row['current_step']}"
                )

            if not stuck or action is None:
                if stuck:
                    logger.info("Re-run with --action complete|remove|create_sequences to fix them")
                return 0

            result = await service.fix_stuck_leads(action, campaign_id)
            logger.info(f"Done: {result}")
            return 0
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    setup_logging()
    args = parse_args(argv)
    return asyncio.run(run(args.action, args.campaign_id))


if __name__ == "__main__":
    sys.exit(main())
