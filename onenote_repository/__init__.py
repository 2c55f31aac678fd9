from .errors import ApiError, AuthError, NotFoundError, OneNoteError, PackagingError, TransportError
from .repository import OneNoteRepository
from .services.graph_client import OneNoteClient
from .services.oauth import TokenSession
from .services.page_fetcher import PageFetcher

__all__ = [
    "ApiError",
    "AuthError",
    "NotFoundError",
    "OneNoteClient",
    "OneNoteError",
    "OneNoteRepository",
    "PackagingError",
    "PageFetcher",
    "TokenSession",
    "TransportError",
]
