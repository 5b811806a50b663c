"""
Error taxonomy shared by the shelf, catalog and member services.

Every error carries a stable ``message_key`` that clients can switch on and
an HTTP status the API layer maps it to.
"""

from typing import Any, Dict, Optional


MESSAGES: Dict[str, str] = {
    # validation
    "MISSING_BOOKSHELF_DATE": "A read date is required for the read shelf.",
    "BOOKSHELF_ALREADY_EXISTS": "This book is already on the shelf.",
    "TAG_LIMIT_EXCEEDED": "A book can carry at most {limit} tags.",
    "TAG_NOT_IN_ENTRY": "Tag does not belong to this shelf entry.",
    "TAG_LABEL_EMPTY": "Tag labels cannot be empty.",
    "INVALID_FILTER": "Unknown shelf filter.",
    "INVALID_PAGINATION": "Page must be >= 1 and size within the allowed range.",
    "INVALID_PAYLOAD": "Request payload does not match the shelf.",
    "MISSING_SEARCH_QUERY": "A search query is required.",
    "UNSUPPORTED_PROVIDER": "Unsupported login provider.",
    # not found
    "BOOKSHELF_NOT_FOUND": "The selected book was not found on this shelf.",
    "BOOK_NOT_FOUND": "Book not found.",
    "USER_NOT_FOUND": "User not found.",
    "BOOK_NO_MORE_FOUND": "No more search results.",
    "FAIL_REQUEST_BOOK_INFO": "Failed to fetch book information.",
    # authorization
    "BOOKSHELF_FORBIDDEN": "You do not own this shelf entry.",
    "INVALID_SOCIAL_TOKEN": "The identity provider rejected the login.",
    "FAIL_REQUEST_USER_INFO": "Failed to fetch the user profile from the identity provider.",
    # conflict
    "CONCURRENT_MODIFICATION": "The shelf was changed concurrently; please retry.",
}


class BookshelfError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message_key: str, message: Optional[str] = None, **detail: Any):
        self.message_key = message_key
        self.detail = detail
        if message is None:
            template = MESSAGES.get(message_key, message_key)
            try:
                message = template.format(**detail)
            except (KeyError, IndexError):
                message = template
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.message_key,
            "error": self.message,
            "detail": self.detail or None,
        }


class ValidationError(BookshelfError):
    """Missing required field, tag limit exceeded, cross-entry tag reference."""
    status_code = 400


class NotFoundError(BookshelfError):
    """Entry, book or user absent, or the external search is exhausted."""
    status_code = 404


class AuthorizationError(BookshelfError):
    """Caller does not own the target, or the identity provider refused."""
    status_code = 403


class ConflictError(BookshelfError):
    """A transaction kept losing write conflicts after its retries."""
    status_code = 409


class UpstreamError(NotFoundError):
    """External API unreachable or malformed; surfaced as not-found."""

    def __init__(self, message_key: str = "FAIL_REQUEST_BOOK_INFO", message: Optional[str] = None, **detail: Any):
        super().__init__(message_key, message, **detail)
