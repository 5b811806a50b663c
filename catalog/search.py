"""
Async client for the Naver book search API.

A search is a single blocking call with a request timeout and no retry;
any upstream failure surfaces immediately.
"""

from typing import Optional

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from bookshelf.errors import NotFoundError, UpstreamError, ValidationError
from utilities.config import config
from .models import NaverSearchResponse, SearchResult

logger = structlog.get_logger(__name__)

SEARCH_PATH = "/v1/search/book.json"
MAX_DISPLAY = 100


def start_offset(page: int, size: int) -> int:
    """1-indexed position of the first result of ``page``."""
    return (page - 1) * size + 1


class BookSearchClient:
    """
    Searches the external book catalog.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the search client.

        Args:
            base_url: API root, defaults to the configured Naver URL
            client_id: Naver application id
            client_secret: Naver application secret
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or config.naver_base_url).rstrip("/")
        headers = config.get_search_headers()
        if client_id is not None:
            headers["X-Naver-Client-Id"] = client_id
        if client_secret is not None:
            headers["X-Naver-Client-Secret"] = client_secret

        self.client_config = {
            "base_url": self.base_url,
            "timeout": timeout or config.search_request_timeout,
            "headers": headers,
        }
        if transport is not None:
            self.client_config["transport"] = transport

    async def search(self, query: str, page: int = 1, size: int = 10) -> SearchResult:
        """
        Search books by free text.

        Args:
            query: Search text
            page: Page number (starts from 1)
            size: Results per page (1-100)

        Returns:
            SearchResult; an empty list when nothing matches at all

        Raises:
            ValidationError: blank query or invalid paging
            NotFoundError: the page starts past the last result
            UpstreamError: the API could not be reached or sent garbage
        """
        if not query or not query.strip():
            raise ValidationError("MISSING_SEARCH_QUERY")
        if page < 1 or size < 1 or size > MAX_DISPLAY:
            raise ValidationError("INVALID_PAGINATION", page=page, size=size)

        start = start_offset(page, size)
        params = {
            "query": query.strip(),
            "display": size,
            "start": start,
            "sort": config.search_sort,
        }

        try:
            async with httpx.AsyncClient(**self.client_config) as client:
                response = await client.get(SEARCH_PATH, params=params)
                response.raise_for_status()
            payload = NaverSearchResponse(**response.json())
        except httpx.HTTPStatusError as e:
            logger.error(
                "Book search rejected by upstream",
                status_code=e.response.status_code,
                query=query,
                start=start,
            )
            raise UpstreamError() from e
        except httpx.HTTPError as e:
            logger.error("Book search request failed", error=str(e), query=query, start=start)
            raise UpstreamError() from e
        except (ValueError, TypeError, PydanticValidationError) as e:
            logger.error("Malformed book search response", error=str(e), query=query)
            raise UpstreamError() from e

        if payload.total != 0 and payload.total < start:
            raise NotFoundError("BOOK_NO_MORE_FOUND", total=payload.total, start=start)

        books = []
        for item in payload.items:
            if not item.isbn.strip() or not item.title.strip():
                logger.debug("Skipping search item without isbn or title", title=item.title)
                continue
            books.append(item.to_book_ref())

        logger.info("Book search completed", query=query, page=page, size=size, total=payload.total)
        return SearchResult(books=books, page=page, size=size, total_size=payload.total)
