"""
GosPlan v2 API client

Searches 44-FZ and 223-FZ purchases by keyword and returns them as
CanonicalTender records. Every outbound request goes through the shared
RateLimiter handed in by the application.
"""
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from config.settings import (
    GOSPLAN_BASE_URL,
    GOSPLAN_MAX_RETRIES,
    GOSPLAN_TIMEOUT_SECONDS,
    GOSPLAN_USER_AGENT,
)
from services.models import CanonicalTender, REGIME_223, REGIME_44, REGIMES, SearchFilters
from services.tender_normalizer import normalize_record, parse_raw_record
from utils.exceptions import MalformedResponseError, TransportError
from utils.logging_config import get_logger
from utils.rate_limiter import RateLimiter

logger = get_logger(__name__, "tender")

DEFAULT_REGIME_LIMIT = 50

REGIME_ENDPOINTS = {
    REGIME_44: "/fz44/purchases",
    REGIME_223: "/fz223/purchases",
}


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_search_params(keyword: str, filters: Optional[SearchFilters]) -> Dict[str, Any]:
    """Query string for one regime request."""
    params: Dict[str, Any] = {"search_description": keyword}
    if filters is None:
        params["limit"] = DEFAULT_REGIME_LIMIT
        return params

    params["limit"] = filters.limit
    if filters.deadline_from is not None:
        params["submission_close_after"] = _format_timestamp(filters.deadline_from)
    if filters.deadline_to is not None:
        params["submission_close_before"] = _format_timestamp(filters.deadline_to)
    if filters.min_price is not None:
        params["max_price_from"] = str(filters.min_price)
    if filters.max_price is not None:
        params["max_price_to"] = str(filters.max_price)
    if filters.region:
        params["region"] = filters.region
    return params


def extract_records(body: Any, keyword: str, regime: str) -> List[Dict[str, Any]]:
    """Pull the list of purchase objects out of a decoded response body."""
    if isinstance(body, dict):
        records = body.get("data")
        if records is None:
            records = body.get("items")
    else:
        records = body

    if records is None:
        return []
    if not isinstance(records, list):
        raise MalformedResponseError(
            f"Unexpected {regime}-FZ response shape: {type(records).__name__}",
            keyword=keyword,
            regime=regime,
        )
    return records


class GosPlanClient:
    """Keyword search over both procurement regimes."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        base_url: str = GOSPLAN_BASE_URL,
        timeout: float = GOSPLAN_TIMEOUT_SECONDS,
        user_agent: str = GOSPLAN_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        self.rate_limiter = rate_limiter
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Reserved: retries are the scheduler's concern, the client never retries.
        self.max_retries = GOSPLAN_MAX_RETRIES
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/json",
        })

    def search(
        self,
        keyword: str,
        query_id: Optional[int] = None,
        filters: Optional[SearchFilters] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> List[CanonicalTender]:
        """
        Search both regimes for ``keyword`` and return the normalized results,
        44-FZ purchases first.

        Raises TransportError or MalformedResponseError; neither is retried.
        """
        params = build_search_params(keyword, filters)
        logger.info(f"Searching GosPlan for '{keyword}' (query_id={query_id}, limit={params['limit']})")

        tenders: List[CanonicalTender] = []
        for regime in REGIMES:
            for payload in self._fetch_regime(keyword, regime, params, stop_event):
                try:
                    tender = normalize_record(parse_raw_record(payload, regime))
                except MalformedResponseError as exc:
                    exc.keyword = keyword
                    logger.error(f"Malformed {regime}-FZ record for '{keyword}': {exc}")
                    raise
                tender.query_id = query_id
                tenders.append(tender)

        logger.info(f"GosPlan returned {len(tenders)} tenders for '{keyword}'")
        return tenders

    def _fetch_regime(
        self,
        keyword: str,
        regime: str,
        params: Dict[str, Any],
        stop_event: Optional[threading.Event],
    ) -> List[Dict[str, Any]]:
        url = f"{self.base_url}{REGIME_ENDPOINTS[regime]}"

        with self.rate_limiter.permit(stop_event):
            try:
                resp = self.session.get(url, params=params, timeout=self.timeout)
                resp.raise_for_status()
            except requests.exceptions.HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else None
                logger.error(f"GosPlan {regime}-FZ search for '{keyword}' failed with HTTP {status}")
                raise TransportError(
                    f"GosPlan {regime}-FZ returned HTTP {status}",
                    keyword=keyword,
                    regime=regime,
                    status_code=status,
                ) from exc
            except requests.exceptions.RequestException as exc:
                logger.error(f"GosPlan {regime}-FZ search for '{keyword}' failed: {exc}")
                raise TransportError(
                    f"GosPlan {regime}-FZ request failed: {exc}",
                    keyword=keyword,
                    regime=regime,
                ) from exc

        try:
            body = resp.json()
        except ValueError as exc:
            logger.error(f"GosPlan {regime}-FZ returned non-JSON body for '{keyword}'")
            raise MalformedResponseError(
                f"GosPlan {regime}-FZ returned a non-JSON body",
                keyword=keyword,
                regime=regime,
                status_code=resp.status_code,
            ) from exc

        try:
            records = extract_records(body, keyword, regime)
        except MalformedResponseError as exc:
            logger.error(f"{exc} (keyword '{keyword}')")
            raise

        logger.debug(f"GosPlan {regime}-FZ: {len(records)} records for '{keyword}'")
        return records
