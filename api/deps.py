"""
FastAPI dependency providers backed by the components built in app.py
"""
from fastapi import Request


def get_tender_store(request: Request):
    return request.app.state.tender_store


def get_query_catalog(request: Request):
    return request.app.state.query_catalog


def get_db_pool(request: Request):
    return request.app.state.db_pool


def get_background_loops(request: Request) -> dict:
    return getattr(request.app.state, "background_loops", {})
