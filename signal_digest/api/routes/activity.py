"""Per-subscriber usage and failure history."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from signal_digest.accounting.repository import AccountingRepository
from signal_digest.api.auth import verify_api_key
from signal_digest.api.dependencies import get_accounting_repository
from signal_digest.api.models import (
    ErrorEventItem,
    ErrorResponse,
    ErrorsResponse,
    UsageEventItem,
    UsageResponse,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/subscribers/{email}/usage",
    response_model=UsageResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="List token usage",
    description="Recorded dispatches with token counts and cost, newest first.",
)
async def list_usage(
    email: str,
    limit: int = Query(50, ge=1, le=200, description="Maximum events to return"),
    api_key: str = Depends(verify_api_key),
    repo: AccountingRepository = Depends(get_accounting_repository),
) -> UsageResponse:
    try:
        events = await repo.list_usage(email, limit=limit)
        items = [UsageEventItem(**e.to_dict()) for e in events]
        return UsageResponse(email=email, events=items, total=len(items))

    except Exception as e:
        logger.error(f"Failed to list usage: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list usage",
        )


@router.get(
    "/subscribers/{email}/errors",
    response_model=ErrorsResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="List failed runs",
    description="Detached dispatch runs that failed, newest first.",
)
async def list_errors(
    email: str,
    limit: int = Query(50, ge=1, le=200, description="Maximum events to return"),
    api_key: str = Depends(verify_api_key),
    repo: AccountingRepository = Depends(get_accounting_repository),
) -> ErrorsResponse:
    try:
        events = await repo.list_errors(email, limit=limit)
        items = [ErrorEventItem(**e.to_dict()) for e in events]
        return ErrorsResponse(email=email, events=items, total=len(items))

    except Exception as e:
        logger.error(f"Failed to list errors: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list errors",
        )
