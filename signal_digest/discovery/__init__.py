"""Source discovery: multi-provider search with bridge racing."""

from signal_digest.discovery.engine import DiscoveryEngine
from signal_digest.discovery.racing import first_success, interleave
from signal_digest.discovery.schemas import SearchResult

__all__ = [
    "DiscoveryEngine",
    "SearchResult",
    "first_success",
    "interleave",
]
