"""Search result schema returned by discovery providers."""

from pydantic import BaseModel

from signal_digest.ingestion.schemas import SourceType


class SearchResult(BaseModel):
    """A candidate source a subscriber can add."""

    title: str
    description: str = ""
    url: str
    type: SourceType
    thumbnail: str = ""
