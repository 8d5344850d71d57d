"""
Standalone script to delete tenders whose application deadline has passed.
Runs one cleanup pass immediately instead of waiting for the background loop.

Usage:
    python scripts/run_retention_sweep.py
"""
import sys
import os

# Add parent directory to path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging

from config.db import DatabasePool
from services.retention_sweeper import RetentionSweeper
from services.tender_store import PostgresTenderStore

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Main entry point for the script."""
    logger.info("=" * 80)
    logger.info("Expired Tenders Cleanup Script")
    logger.info("=" * 80)

    db_pool = DatabasePool()
    try:
        sweeper = RetentionSweeper(PostgresTenderStore(db_pool))
        deleted = sweeper.run_cycle()
        logger.info("=" * 80)
        logger.info(f"Deleted {deleted} expired tenders")
        logger.info("=" * 80)
    except KeyboardInterrupt:
        logger.info("Script interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        db_pool.close_all()


if __name__ == "__main__":
    main()
