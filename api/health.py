"""
Health check endpoints
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.deps import get_background_loops, get_db_pool

router = APIRouter()


@router.get("/")
def root():
    return {
        "message": "Tender Tracker API",
        "version": "1.0.0",
        "health": "/health",
    }


@router.get("/health")
def health_check(db_pool=Depends(get_db_pool), loops: dict = Depends(get_background_loops)):
    """Database reachability plus the state of the background loops"""
    database_ok = db_pool.test_connection()
    return {
        "status": "healthy" if database_ok else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if database_ok else "disconnected",
        "loops": {name: loop.status() for name, loop in loops.items()},
    }
