"""Dispatch trigger and scheduler tick endpoints."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from signal_digest.api.auth import verify_api_key, verify_cron_secret
from signal_digest.api.dependencies import get_orchestrator, get_scheduler
from signal_digest.api.models import (
    DispatchAckResponse,
    DispatchTriggerRequest,
    ErrorResponse,
    TickItem,
    TickResponse,
)
from signal_digest.dispatch.orchestrator import DispatchOrchestrator
from signal_digest.dispatch.scheduler import DeliveryScheduler
from signal_digest.dispatch.schemas import DispatchRequest

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/dispatch",
    response_model=DispatchAckResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Trigger a briefing",
    description=(
        "Check the subscriber's subscription state and, when a briefing is due, "
        "schedule it. The response returns before the briefing is produced."
    ),
)
async def trigger_dispatch(
    request: DispatchTriggerRequest,
    api_key: str = Depends(verify_api_key),
    orchestrator: DispatchOrchestrator = Depends(get_orchestrator),
) -> DispatchAckResponse:
    try:
        ack = await orchestrator.dispatch(
            DispatchRequest(
                email=request.email,
                force=request.force,
                dry_run=request.dry_run,
            )
        )

        logger.info(
            "Dispatch triggered",
            email=request.email,
            status=ack.status,
            detail=ack.detail,
        )

        return DispatchAckResponse(status=ack.status, detail=ack.detail)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to trigger dispatch: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to trigger dispatch",
        )


@router.post(
    "/cron/tick",
    response_model=TickResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid cron secret"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Run a scheduler tick",
    description=(
        "Dispatch every subscriber whose delivery time is the current minute "
        "in their timezone. Intended to be called once a minute."
    ),
)
async def cron_tick(
    force: bool = Query(default=False, description="Ignore delivery times"),
    email: str | None = Query(default=None, description="Only consider this subscriber"),
    token: str = Depends(verify_cron_secret),
    scheduler: DeliveryScheduler = Depends(get_scheduler),
) -> TickResponse:
    start_time = time.perf_counter()

    try:
        results = await scheduler.tick(force=force, email=email)
        items = [TickItem(**r.to_dict()) for r in results]
        latency_ms = (time.perf_counter() - start_time) * 1000

        return TickResponse(
            results=items,
            dispatched=sum(1 for i in items if i.status == "dispatched"),
            total=len(items),
            latency_ms=round(latency_ms, 2),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Scheduler tick failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Scheduler tick failed",
        )
