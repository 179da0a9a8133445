"""
Script to sync every entity type from Gripp into the local store.

Usage:
    python scripts/sync_all.py [--incremental] [entity ...]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gripp_mirror.config import get_settings
from gripp_mirror.errors import MirrorError
from gripp_mirror.services import MirrorServices

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync Gripp data into the local mirror")
    parser.add_argument("entities", nargs="*", help="Entity types to sync (default: all)")
    parser.add_argument(
        "--incremental",
        action="store_true",
        help="Only re-fetch recent hours and invoices",
    )
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main function to sync all data."""
    args = parse_args(argv)
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    services = MirrorServices.build(settings)

    try:
        await services.start()
        outcomes = await services.orchestrator.sync_all(
            args.entities or None, incremental=args.incremental
        )
    except Exception as e:
        logger.error(f"Sync failed: {e}", exc_info=True)
        return 1
    finally:
        await services.close()

    logger.info("=" * 50)
    failures = 0
    for entity, outcome in outcomes.items():
        if isinstance(outcome, MirrorError):
            failures += 1
            logger.info(f"FAILED {entity.value}: {outcome}")
        else:
            logger.info(
                f"OK     {entity.value}: {outcome.saved} saved, "
                f"{outcome.skipped} skipped, {len(outcome.errors)} error(s)"
            )
    logger.info("=" * 50)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
