"""Subscribers: records, persistence and the subscription gate."""

from signal_digest.subscribers.gate import check_subscription
from signal_digest.subscribers.schemas import (
    GateDecision,
    Preferences,
    Source,
    Subscriber,
    SubscriberStats,
)

__all__ = [
    "GateDecision",
    "Preferences",
    "Source",
    "Subscriber",
    "SubscriberStats",
    "check_subscription",
]
