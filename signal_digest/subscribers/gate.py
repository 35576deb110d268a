"""Subscription gate: pause state -> send or skip.

Pure function of the subscriber's preferences and the current time. The
gate never mutates state; when a timed pause has run out it reports
``pause_expired`` and leaves the transition back to ``active`` to the
caller.
"""

from datetime import datetime, timezone

from signal_digest.subscribers.schemas import GateDecision, Preferences

SEND = GateDecision(action="send")


def check_subscription(preferences: Preferences, now: datetime | None = None) -> GateDecision:
    """
    Decide whether a dispatch may proceed.

    Args:
        preferences: The subscriber's preferences
        now: Reference time (defaults to current UTC time)

    Returns:
        ``send``; ``skip`` with ``paused_indefinite`` or ``paused_temporary``
        (plus ``until``); or ``send`` with ``pause_expired``.
    """
    status = preferences.subscription_status
    if not status or status == "active":
        return SEND

    if status == "paused":
        paused_until = preferences.paused_until
        if paused_until is None:
            return GateDecision(action="skip", reason="paused_indefinite")

        now = now or datetime.now(timezone.utc)
        if now < paused_until:
            return GateDecision(action="skip", reason="paused_temporary", until=paused_until)

        return GateDecision(action="send", reason="pause_expired")

    return SEND
