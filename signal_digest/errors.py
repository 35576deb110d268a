"""Exception hierarchy for signal-digest.

Only failures that abort a unit of work are exceptions. Expected outcomes
(an unrecognized URL, an empty aggregation, a paused subscriber) are
returned as values by the components that produce them.
"""


class SignalDigestError(Exception):
    """Base exception for all signal-digest errors."""


class FetchFailure(SignalDigestError):
    """A single source could not be fetched or parsed."""

    def __init__(self, endpoint: str, message: str):
        super().__init__(f"{endpoint}: {message}")
        self.endpoint = endpoint


class SynthesisFailure(SignalDigestError):
    """The synthesis collaborator could not produce a briefing."""


class DeliveryFailure(SignalDigestError):
    """The delivery collaborator reported that the briefing was not sent."""

    def __init__(self, recipient: str, channel: str):
        super().__init__(f"Delivery to {recipient} via {channel} failed")
        self.recipient = recipient
        self.channel = channel


class InvalidSearchType(SignalDigestError, ValueError):
    """A discovery search was requested with an unknown type filter."""

    def __init__(self, type_filter: str):
        super().__init__(f"Invalid search type {type_filter!r}")
        self.type_filter = type_filter
