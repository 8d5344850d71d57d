"""
Periodic tender search over all active saved queries
"""
from typing import Any, Dict, Optional

from config.settings import (
    TENDER_SEARCH_INITIAL_DELAY_SECONDS,
    TENDER_SEARCH_INTERVAL_MINUTES,
    TENDER_SEARCH_LIMIT,
    TENDER_SEARCH_QUERY_DELAY_SECONDS,
)
from services.background_loop import BackgroundLoop
from services.models import SearchCycleResult, SearchFilters
from utils.exceptions import ShutdownRequested, StoreError, UpstreamError


class SearchScheduler(BackgroundLoop):
    """
    Every interval, run each active query against GosPlan and store the
    tenders that are new. Queries run one after another with a short pause
    between them; a failing query is logged and skipped.
    """

    name = "tender-search"

    def __init__(
        self,
        client,
        store,
        catalog,
        clock=None,
        interval_seconds: float = TENDER_SEARCH_INTERVAL_MINUTES * 60,
        initial_delay_seconds: float = TENDER_SEARCH_INITIAL_DELAY_SECONDS,
        query_delay_seconds: float = TENDER_SEARCH_QUERY_DELAY_SECONDS,
        search_limit: int = TENDER_SEARCH_LIMIT,
    ):
        super().__init__(interval_seconds, initial_delay_seconds, clock)
        self.client = client
        self.store = store
        self.catalog = catalog
        self.query_delay_seconds = query_delay_seconds
        self.search_limit = search_limit
        self.total_found = 0
        self.total_added = 0
        self.last_result: Optional[SearchCycleResult] = None

    def _search_query(self, query) -> list:
        tenders = self.client.search(
            query.keyword,
            query.id,
            SearchFilters(limit=self.search_limit),
            stop_event=self.stop_event,
        )
        saved_at = self.clock.now()
        for tender in tenders:
            tender.query_id = query.id
            tender.saved_at = saved_at
        return tenders

    def run_cycle(self) -> SearchCycleResult:
        result = SearchCycleResult()
        queries = self.catalog.list_active_queries()
        if not queries:
            self.logger.info("No active search queries; nothing to search this cycle")
            self.last_result = result
            return result

        self.logger.info(f"Starting tender search cycle for {len(queries)} active queries")
        for index, query in enumerate(queries):
            if index > 0 and not self.clock.sleep(self.query_delay_seconds, self.stop_event):
                raise ShutdownRequested("Stopped between queries")

            try:
                tenders = self._search_query(query)
                found = len(tenders)
                # found includes tenders whose insert then fails
                result.found += found
                added = self.store.batch_insert(tenders) if tenders else 0
            except ShutdownRequested:
                raise
            except UpstreamError as exc:
                result.failed_query_ids.append(query.id)
                self.logger.error(f"Upstream search failed for query {query.id} ('{query.keyword}'): {exc}")
                continue
            except StoreError as exc:
                result.failed_query_ids.append(query.id)
                self.logger.error(f"Storing tenders failed for query {query.id} ('{query.keyword}'): {exc}")
                continue
            except Exception as exc:
                result.failed_query_ids.append(query.id)
                self.logger.error(
                    f"Unexpected error for query {query.id} ('{query.keyword}'): {exc}", exc_info=True
                )
                continue

            result.queries_processed += 1
            result.added += added
            self.logger.info(f"Query {query.id} ('{query.keyword}'): found={found}, added={added}")

        self.total_found += result.found
        self.total_added += result.added
        self.last_result = result
        self.logger.info(
            f"Tender search cycle complete: queries={result.queries_processed}/{len(queries)}, "
            f"found={result.found}, added={result.added}, failed={len(result.failed_query_ids)}"
        )
        return result

    def status(self) -> Dict[str, Any]:
        status = super().status()
        status["totalFound"] = self.total_found
        status["totalAdded"] = self.total_added
        if self.last_result is not None:
            status["lastCycle"] = {
                "found": self.last_result.found,
                "added": self.last_result.added,
                "queriesProcessed": self.last_result.queries_processed,
                "failedQueryIds": list(self.last_result.failed_query_ids),
            }
        return status
