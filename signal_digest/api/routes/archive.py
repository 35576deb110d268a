"""Briefing archive endpoints."""

import datetime as dt

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from signal_digest.accounting.repository import AccountingRepository
from signal_digest.api.auth import verify_api_key
from signal_digest.api.dependencies import get_accounting_repository
from signal_digest.api.models import ArchiveDatesResponse, BriefingResponse, ErrorResponse

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/archive/{email}",
    response_model=ArchiveDatesResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="List archived briefing dates",
    description="Dates with an archived briefing, newest first.",
)
async def list_archive(
    email: str,
    api_key: str = Depends(verify_api_key),
    repo: AccountingRepository = Depends(get_accounting_repository),
) -> ArchiveDatesResponse:
    try:
        dates = await repo.list_archive_dates(email)
        return ArchiveDatesResponse(email=email, dates=dates, total=len(dates))

    except Exception as e:
        logger.error(f"Failed to list archive: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list archive",
        )


@router.get(
    "/archive/{email}/{archive_date}",
    response_model=BriefingResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "No briefing for that date"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Get an archived briefing",
)
async def get_archived_briefing(
    email: str,
    archive_date: dt.date,
    api_key: str = Depends(verify_api_key),
    repo: AccountingRepository = Depends(get_accounting_repository),
) -> BriefingResponse:
    try:
        briefing = await repo.get_archived_briefing(email, archive_date)
        if briefing is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No briefing archived for {archive_date.isoformat()}",
            )

        return BriefingResponse(email=email, date=archive_date, briefing=briefing)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get archived briefing: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get archived briefing",
        )


@router.get(
    "/latest-briefing/{email}",
    response_model=BriefingResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "No briefing yet"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Get the most recent briefing",
)
async def get_latest_briefing(
    email: str,
    api_key: str = Depends(verify_api_key),
    repo: AccountingRepository = Depends(get_accounting_repository),
) -> BriefingResponse:
    try:
        briefing = await repo.get_latest_briefing(email)
        if briefing is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No briefing has been sent yet",
            )

        return BriefingResponse(email=email, briefing=briefing)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get latest briefing: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get latest briefing",
        )
