"""Source detection and subscriber source management endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from signal_digest.api.auth import verify_api_key
from signal_digest.api.dependencies import get_feed_fetcher, get_subscriber_repository
from signal_digest.api.models import (
    AddSourceRequest,
    AddSourceResponse,
    DetectResponse,
    ErrorResponse,
    FaviconRequest,
    FaviconResponse,
    SampleItem,
    SourceItem,
    SourcesResponse,
    UpdateSourceRequest,
)
from signal_digest.ingestion.favicons import resolve_favicons
from signal_digest.ingestion.feed_fetcher import FeedFetcher
from signal_digest.ingestion.resolver import normalize_feed_endpoint, resolve
from signal_digest.subscribers.repository import SubscriberRepository
from signal_digest.subscribers.schemas import Source, Subscriber

logger = structlog.get_logger(__name__)
router = APIRouter()

PREVIEW_ITEMS = 3


def _source_to_item(source: Source) -> SourceItem:
    return SourceItem(**source.to_dict())


@router.get(
    "/sources/detect",
    response_model=DetectResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
    },
    summary="Classify a URL and preview its feed",
    description=(
        "Work out the source type and canonical feed endpoint for a pasted URL, "
        "then read up to three recent items from the feed. The feed's own title "
        "replaces the guessed name when available. Unrecognized sites fall back "
        "to a low-confidence blog guess."
    ),
)
async def detect_source(
    url: str = Query(..., description="URL to classify"),
    api_key: str = Depends(verify_api_key),
    fetcher: FeedFetcher = Depends(get_feed_fetcher),
) -> DetectResponse:
    detected = resolve(url)
    if detected is None:
        return DetectResponse(detected=False)

    preview = await fetcher.preview(
        detected.feed_url, detected.type, detected.name, limit=PREVIEW_ITEMS
    )
    if preview.title:
        detected = detected.model_copy(update={"name": preview.title})

    samples = [
        SampleItem(title=item.title, link=item.link, published_at=item.published_at)
        for item in preview.items
    ]
    return DetectResponse(
        detected=True,
        source=detected,
        sample_items=samples,
        can_preview=bool(samples),
    )


@router.post(
    "/sources/favicons",
    response_model=FaviconResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Neither url nor urls given"},
    },
    summary="Resolve source artwork",
    description=(
        "Best artwork for each URL: the feed's image, a YouTube channel avatar, "
        "or the site favicon. Lookups that fail fall back to the site favicon."
    ),
)
async def resolve_source_favicons(
    request: FaviconRequest,
    api_key: str = Depends(verify_api_key),
    fetcher: FeedFetcher = Depends(get_feed_fetcher),
) -> FaviconResponse:
    return FaviconResponse(favicons=await resolve_favicons(request.all_urls, fetcher))


@router.get(
    "/subscribers/{email}/sources",
    response_model=SourcesResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Subscriber not found"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="List a subscriber's sources",
)
async def list_sources(
    email: str,
    api_key: str = Depends(verify_api_key),
    repo: SubscriberRepository = Depends(get_subscriber_repository),
) -> SourcesResponse:
    try:
        subscriber = await repo.get(email)
        if subscriber is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Subscriber {email!r} not found",
            )

        items = [_source_to_item(s) for s in subscriber.sources]
        return SourcesResponse(email=email, sources=items, total=len(items))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list sources: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list sources",
        )


@router.post(
    "/subscribers/{email}/sources",
    response_model=AddSourceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": AddSourceResponse, "description": "Source was already present"},
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "URL could not be classified"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Add a source",
    description=(
        "Classify the URL and attach the resulting feed to the subscriber. "
        "Unknown subscribers are created on a trial tier with default preferences. "
        "Adding a feed the subscriber already follows is a no-op that returns the "
        "existing source with `added: false`."
    ),
)
async def add_source(
    email: str,
    request: AddSourceRequest,
    response: Response,
    api_key: str = Depends(verify_api_key),
    repo: SubscriberRepository = Depends(get_subscriber_repository),
) -> AddSourceResponse:
    try:
        detected = resolve(request.url)
        if detected is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Could not classify URL {request.url!r}",
            )

        if await repo.get(email) is None:
            await repo.upsert(Subscriber(email=email))
            logger.info("Subscriber created", email=email)

        source = Source(
            type=detected.type,
            name=request.name or detected.name,
            feed_endpoint=detected.feed_url,
            original_url=detected.original_url,
            favicon=detected.favicon,
        )

        if not await repo.add_source(email, source):
            endpoint = normalize_feed_endpoint(source.feed_endpoint)
            existing = next(
                (
                    s
                    for s in await repo.list_sources(email)
                    if normalize_feed_endpoint(s.feed_endpoint) == endpoint
                ),
                source,
            )
            response.status_code = status.HTTP_200_OK
            return AddSourceResponse(**existing.to_dict(), added=False)

        logger.info(
            "Source added",
            email=email,
            type=source.type.value,
            feed_endpoint=source.feed_endpoint,
            confidence=detected.confidence,
        )
        return AddSourceResponse(**source.to_dict())

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to add source: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add source",
        )


@router.patch(
    "/subscribers/{email}/sources/{source_id}",
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Source not found"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Enable or disable a source",
)
async def update_source(
    email: str,
    source_id: str,
    request: UpdateSourceRequest,
    api_key: str = Depends(verify_api_key),
    repo: SubscriberRepository = Depends(get_subscriber_repository),
) -> dict:
    try:
        updated = await repo.set_source_enabled(email, source_id, request.enabled)
        if not updated:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Source {source_id!r} not found",
            )

        return {"id": source_id, "enabled": request.enabled}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update source: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update source",
        )


@router.delete(
    "/subscribers/{email}/sources/{source_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Source not found"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Remove a source",
)
async def remove_source(
    email: str,
    source_id: str,
    api_key: str = Depends(verify_api_key),
    repo: SubscriberRepository = Depends(get_subscriber_repository),
) -> None:
    try:
        removed = await repo.remove_source(email, source_id)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Source {source_id!r} not found",
            )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to remove source: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove source",
        )
