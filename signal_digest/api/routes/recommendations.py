"""Starter packs and curated source recommendations."""

import structlog
from fastapi import APIRouter, Depends

from signal_digest.api.auth import verify_api_key
from signal_digest.api.dependencies import get_subscriber_repository
from signal_digest.api.models import ErrorResponse, RecommendationsResponse, StarterPacksResponse
from signal_digest.discovery.recommendations import contextual_recommendations, starter_packs
from signal_digest.subscribers.repository import SubscriberRepository

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/starter-packs",
    response_model=StarterPacksResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
    },
    summary="List starter packs",
    description="Themed bundles of curated sources for first-time subscribers.",
)
async def list_starter_packs(
    api_key: str = Depends(verify_api_key),
) -> StarterPacksResponse:
    return StarterPacksResponse(packs=starter_packs())


@router.get(
    "/subscribers/{email}/recommendations",
    response_model=RecommendationsResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
    },
    summary="Recommend sources",
    description=(
        "Subscribers without sources get the starter packs. Everyone else gets "
        "a handful of curated sources they do not already follow, spread across "
        "categories."
    ),
)
async def recommend_sources(
    email: str,
    api_key: str = Depends(verify_api_key),
    repo: SubscriberRepository = Depends(get_subscriber_repository),
) -> RecommendationsResponse:
    try:
        subscriber = await repo.get(email)
    except Exception as e:
        logger.warning(f"Falling back to starter packs: {e}", email=email)
        subscriber = None

    if subscriber is None or not subscriber.sources:
        return RecommendationsResponse(mode="starter", packs=starter_packs())

    following = [
        url
        for source in subscriber.sources
        for url in (source.feed_endpoint, source.original_url)
    ]
    return RecommendationsResponse(
        mode="contextual",
        sources=contextual_recommendations(following),
    )
