"""
Periodic removal of tenders whose application deadline has passed
"""
from datetime import timedelta
from typing import Any, Dict, Optional

from config.settings import (
    TENDER_CLEANUP_INITIAL_DELAY_SECONDS,
    TENDER_CLEANUP_INTERVAL_HOURS,
    TENDER_RETENTION_GRACE_HOURS,
)
from services.background_loop import BackgroundLoop

# Number of deleted tenders listed individually at debug level
LOG_SAMPLE_SIZE = 10


class RetentionSweeper(BackgroundLoop):
    name = "tender-cleanup"

    def __init__(
        self,
        store,
        clock=None,
        interval_seconds: float = TENDER_CLEANUP_INTERVAL_HOURS * 3600,
        initial_delay_seconds: float = TENDER_CLEANUP_INITIAL_DELAY_SECONDS,
        grace_period: timedelta = timedelta(hours=TENDER_RETENTION_GRACE_HOURS),
    ):
        super().__init__(interval_seconds, initial_delay_seconds, clock)
        self.store = store
        self.grace_period = grace_period
        self.total_deleted = 0
        self.last_deleted: Optional[int] = None

    def run_cycle(self) -> int:
        """Delete tenders with a deadline before now minus the grace period."""
        cutoff = self.clock.now() - self.grace_period
        self.logger.info(f"Looking for tenders with application deadline before {cutoff.isoformat()}")

        expired = self.store.find_expired(cutoff)
        if not expired:
            self.logger.info("No expired tenders to delete")
            self.last_deleted = 0
            return 0

        for tender in expired[:LOG_SAMPLE_SIZE]:
            self.logger.debug(
                f"Deleting tender {tender.purchase_number} (deadline {tender.application_deadline})"
            )
        if len(expired) > LOG_SAMPLE_SIZE:
            self.logger.debug(f"... and {len(expired) - LOG_SAMPLE_SIZE} more")

        deleted = self.store.delete_tenders([tender.id for tender in expired])
        self.total_deleted += deleted
        self.last_deleted = deleted
        self.logger.info(f"Deleted {deleted} expired tenders")
        return deleted

    def status(self) -> Dict[str, Any]:
        status = super().status()
        status["totalDeleted"] = self.total_deleted
        status["lastDeleted"] = self.last_deleted
        return status
