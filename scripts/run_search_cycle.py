"""
Standalone script to run one tender search cycle over all active queries.

Usage:
    python scripts/run_search_cycle.py
"""
import sys
import os

# Add parent directory to path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging

from config.db import DatabasePool
from config.settings import GOSPLAN_REQUEST_DELAY_MS
from services.gosplan_client import GosPlanClient
from services.query_catalog import PostgresQueryCatalog
from services.search_scheduler import SearchScheduler
from services.tender_store import PostgresTenderStore
from utils.rate_limiter import RateLimiter

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    db_pool = DatabasePool()
    try:
        client = GosPlanClient(RateLimiter(GOSPLAN_REQUEST_DELAY_MS / 1000.0))
        scheduler = SearchScheduler(client, PostgresTenderStore(db_pool), PostgresQueryCatalog(db_pool))
        result = scheduler.run_cycle()
        logger.info(
            f"Search cycle finished: found={result.found}, added={result.added}, "
            f"failed queries={result.failed_query_ids or 'none'}"
        )
        if result.failed_query_ids:
            sys.exit(2)
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
