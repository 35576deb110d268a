"""Accounting: usage and error logs, pricing, briefing archive."""

from signal_digest.accounting.pricing import PricingTable
from signal_digest.accounting.schemas import Briefing, ErrorEvent, TokenUsage, UsageEvent

__all__ = [
    "Briefing",
    "ErrorEvent",
    "PricingTable",
    "TokenUsage",
    "UsageEvent",
]
