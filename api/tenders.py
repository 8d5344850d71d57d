"""
Found tender endpoints
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_tender_store
from services.models import TenderSearchParams
from services.tender_store import MAX_PAGE_SIZE
from utils.logging_config import get_logger

router = APIRouter(prefix="/api/tenders")
logger = get_logger(__name__, "app")


@router.get("")
def list_tenders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    search: Optional[str] = None,
    query_id: Optional[int] = Query(None, alias="queryId"),
    from_date: Optional[datetime] = Query(None, alias="fromDate"),
    to_date: Optional[datetime] = Query(None, alias="toDate"),
    deadline_from: Optional[datetime] = Query(None, alias="applicationDeadlineFrom"),
    deadline_to: Optional[datetime] = Query(None, alias="applicationDeadlineTo"),
    show_expired: bool = Query(False, alias="showExpired"),
    sort_by: str = Query("savedAt", alias="sortBy"),
    sort_descending: bool = Query(True, alias="sortDescending"),
    store=Depends(get_tender_store),
):
    """Paginated, filterable list of stored tenders."""
    params = TenderSearchParams(
        page=page,
        page_size=page_size,
        search=search,
        query_id=query_id,
        saved_from=from_date,
        saved_to=to_date,
        deadline_from=deadline_from,
        deadline_to=deadline_to,
        show_expired=show_expired,
        sort_by=sort_by,
        sort_descending=sort_descending,
    )
    return store.search_tenders(params).to_dict()


@router.get("/count")
def count_tenders(store=Depends(get_tender_store)):
    return {"count": store.count_tenders()}


@router.get("/stats")
def tender_stats(store=Depends(get_tender_store)):
    return store.tender_stats()


@router.get("/{tender_id}")
def get_tender(tender_id: int, store=Depends(get_tender_store)):
    tender = store.get_tender(tender_id)
    if tender is None:
        raise HTTPException(status_code=404, detail=f"Tender {tender_id} not found")
    return tender.to_dict()
