"""Service layer for the resolution pipeline and database operations."""

from .broadcaster import LiveBroadcaster, Subscription
from .database import DatabaseService, get_db_service, init_db_service
from .extractor import ExtractedEntry, MentionExtractor
from .fetcher import (
    DocumentFetcher,
    FetchedDocument,
    FetchError,
    FetchTimeout,
    NetworkError,
    NonSuccessStatus,
)
from .mention_store import MentionMatch, MentionStore, ReconcileResult
from .resolver import KeyedLock, ResolutionBatch, ResolvedDocument, SourceResolver
from .salmention import SalmentionPropagator, discover_endpoint

__all__ = [
    "DatabaseService",
    "DocumentFetcher",
    "ExtractedEntry",
    "FetchError",
    "FetchTimeout",
    "FetchedDocument",
    "KeyedLock",
    "LiveBroadcaster",
    "MentionExtractor",
    "MentionMatch",
    "MentionStore",
    "NetworkError",
    "NonSuccessStatus",
    "ReconcileResult",
    "ResolutionBatch",
    "ResolvedDocument",
    "SalmentionPropagator",
    "SourceResolver",
    "Subscription",
    "discover_endpoint",
    "get_db_service",
    "init_db_service",
]
