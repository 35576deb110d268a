"""Dispatch: trigger handling, detached briefing runs and scheduling."""

from signal_digest.dispatch.orchestrator import DispatchOrchestrator
from signal_digest.dispatch.scheduler import DeliveryScheduler
from signal_digest.dispatch.schemas import DispatchAck, DispatchOutcome, DispatchRequest
from signal_digest.dispatch.tasks import TaskSupervisor, get_supervisor

__all__ = [
    "DeliveryScheduler",
    "DispatchAck",
    "DispatchOrchestrator",
    "DispatchOutcome",
    "DispatchRequest",
    "TaskSupervisor",
    "get_supervisor",
]
