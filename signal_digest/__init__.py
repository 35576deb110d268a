"""signal-digest: multi-source feed aggregation and scheduled briefing dispatch."""

__version__ = "0.1.0"
