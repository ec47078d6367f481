"""
Search API Routes.

Accepts the Algolia multi-query payload and answers with the Algolia
response envelope, so InstantSearch can point its search client here.

The handler reads the raw body itself: algoliasearch posts JSON with a
form content-type to avoid CORS preflights. The batch then runs in the
thread pool because compilation and the database calls are synchronous.
"""

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from core.logging import get_logger
from searchbox.errors import GENERIC_VALIDATION_MESSAGE, SearchboxError, public_error, status_for
from searchbox.handler import SearchService, get_search_service

logger = get_logger(__name__)

router = APIRouter(tags=["Search"])


async def _read_payload(request: Request) -> Any:
    body = await request.body()
    if not body:
        return None
    return json.loads(body)


async def _search(request: Request, service: SearchService) -> JSONResponse:
    try:
        payload = await _read_payload(request)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Search payload is not JSON", error=str(e))
        return JSONResponse(status_code=400, content={"error": GENERIC_VALIDATION_MESSAGE})

    try:
        result: Dict[str, Any] = await run_in_threadpool(service.search, payload)
    except SearchboxError as e:
        return JSONResponse(status_code=status_for(e), content=public_error(e))

    return JSONResponse(status_code=200, content=result)


@router.post("/api/search", summary="Run a batch of search requests")
async def search(
    request: Request,
    service: SearchService = Depends(get_search_service),
) -> JSONResponse:
    """
    Run up to 15 search (or facet value search) requests.

    Body: `{"requests": [{"indexName": "...", "params": {...}}]}`
    """
    return await _search(request, service)


@router.post("/1/indexes/{index_name}/queries", include_in_schema=False)
async def algolia_queries(
    index_name: str,
    request: Request,
    service: SearchService = Depends(get_search_service),
) -> JSONResponse:
    """Path used by algoliasearch clients (always called with index "*")."""
    return await _search(request, service)
