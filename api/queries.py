"""
Saved search query endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field, field_validator

from api.deps import get_query_catalog
from utils.logging_config import get_logger

router = APIRouter(prefix="/api/queries")
logger = get_logger(__name__, "app")


class CreateQueryRequest(BaseModel):
    keyword: str = Field(..., min_length=1, max_length=500)
    category: Optional[str] = Field(None, max_length=200)
    is_active: bool = Field(True, alias="isActive")

    model_config = {"populate_by_name": True}

    @field_validator("keyword")
    @classmethod
    def keyword_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("keyword must not be blank")
        return value


class UpdateQueryRequest(BaseModel):
    keyword: Optional[str] = Field(None, min_length=1, max_length=500)
    category: Optional[str] = Field(None, max_length=200)
    is_active: Optional[bool] = Field(None, alias="isActive")

    model_config = {"populate_by_name": True}

    @field_validator("keyword")
    @classmethod
    def keyword_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("keyword must not be blank")
        return value


@router.get("")
def list_queries(catalog=Depends(get_query_catalog)):
    return [query.to_dict() for query in catalog.list_queries()]


@router.get("/active")
def list_active_queries(catalog=Depends(get_query_catalog)):
    return [query.to_dict() for query in catalog.list_active_queries()]


@router.get("/{query_id}")
def get_query(query_id: int, catalog=Depends(get_query_catalog)):
    query = catalog.get_query(query_id)
    if query is None:
        raise HTTPException(status_code=404, detail=f"Query {query_id} not found")
    return query.to_dict()


@router.post("", status_code=201)
def create_query(payload: CreateQueryRequest, catalog=Depends(get_query_catalog)):
    query = catalog.create_query(payload.keyword, payload.category, payload.is_active)
    logger.info(f"POST /api/queries - created query {query.id}")
    return query.to_dict()


@router.put("/{query_id}")
def update_query(query_id: int, payload: UpdateQueryRequest, catalog=Depends(get_query_catalog)):
    query = catalog.update_query(
        query_id,
        keyword=payload.keyword,
        category=payload.category,
        is_active=payload.is_active,
    )
    if query is None:
        raise HTTPException(status_code=404, detail=f"Query {query_id} not found")
    return query.to_dict()


@router.delete("/{query_id}", status_code=204)
def delete_query(query_id: int, catalog=Depends(get_query_catalog)):
    if not catalog.delete_query(query_id):
        raise HTTPException(status_code=404, detail=f"Query {query_id} not found")
    return Response(status_code=204)
