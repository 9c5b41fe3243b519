"""Service abstractions for the s2tldr application."""

from .batch import BatchEvent, BatchOrchestrator
from .library import LibraryError, WorkLibrary, WorkStore
from .outcomes import OutcomeStore, format_tldr_note
from .resolver import TLDRResolver, select_search_candidate
from .semantic_scholar import PaperSearchClient, SemanticScholarClient, TransportError
from .sync import LibrarySync

__all__ = [
    "BatchEvent",
    "BatchOrchestrator",
    "LibraryError",
    "WorkLibrary",
    "WorkStore",
    "OutcomeStore",
    "format_tldr_note",
    "TLDRResolver",
    "select_search_candidate",
    "PaperSearchClient",
    "SemanticScholarClient",
    "TransportError",
    "LibrarySync",
]
