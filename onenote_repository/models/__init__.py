from .models import (
    BinaryPart,
    Course,
    FetchResult,
    ListingItem,
    PagePayload,
    StoredFile,
    TokenState,
)

__all__ = [
    "BinaryPart",
    "Course",
    "FetchResult",
    "ListingItem",
    "PagePayload",
    "StoredFile",
    "TokenState",
]
