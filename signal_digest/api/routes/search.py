"""Source discovery endpoint."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from signal_digest.api.auth import verify_api_key
from signal_digest.api.dependencies import get_discovery_engine
from signal_digest.api.models import ErrorResponse, SearchResponse
from signal_digest.discovery.engine import DiscoveryEngine
from signal_digest.errors import InvalidSearchType

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/search",
    response_model=SearchResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Unknown type filter"},
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Discover sources",
    description=(
        "Search channels, podcasts, subreddits, blogs, social profiles and news "
        "for candidate sources. Without a type, providers are queried in "
        "parallel and their results interleaved."
    ),
)
async def search_sources(
    q: str = Query(..., min_length=1, description="Search query or handle"),
    type: str | None = Query(
        default=None,
        description="Filter: youtube, podcast, reddit, news, blog, rss, twitter, instagram, all",
    ),
    api_key: str = Depends(verify_api_key),
    engine: DiscoveryEngine = Depends(get_discovery_engine),
) -> SearchResponse:
    start_time = time.perf_counter()

    try:
        results = await engine.search(q, type_filter=type)
        latency_ms = (time.perf_counter() - start_time) * 1000

        return SearchResponse(
            query=q,
            type=type,
            results=results,
            total=len(results),
            latency_ms=round(latency_ms, 2),
        )

    except InvalidSearchType as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Source search failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Source search failed",
        )
