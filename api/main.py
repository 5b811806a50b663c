"""
FastAPI main application for the Reading Shelf API.
"""

from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.auth import create_access_token, get_current_user_id
from api.config import config as api_config
from api.database import APIDatabaseService
from api.models import (
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    MessageResponse,
    ShelfStateResponse,
    TokenResponse,
)
from bookshelf.database import MongoDBManager
from bookshelf.errors import BookshelfError
from bookshelf.models import (
    ReadEntry,
    ReadEntryCreate,
    ReadEntryFields,
    ReadShelfPage,
    ShelfKind,
    WishEntry,
    WishEntryCreate,
    WishEntryFields,
    WishShelfPage,
)
from catalog.models import SearchResult
from members.oauth import parse_provider
from utilities.config import config
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)

# Global service container
db_service: APIDatabaseService = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug,
    )
    logger.info("Starting Reading Shelf API")

    global db_service
    db_manager = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        transaction_retry_attempts=config.transaction_retry_attempts,
    )
    try:
        await db_manager.connect()
        logger.info("Database connection established")
        db_service = APIDatabaseService(db_manager)
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    logger.info("Shutting down Reading Shelf API")
    await db_manager.disconnect()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    REST API for a personal reading tracker.

    ## Features

    * **Bookshelf**: file books onto the read or want-to-read shelf, annotate them,
      list them with filters and move wish-list books onto the read shelf
    * **Tags**: up to 5 tags per read book, patched by id (`0` creates, `null` label deletes)
    * **Book search**: search the external catalog page by page
    * **Social login**: exchange a kakao / naver / google access token for an API token

    ## Authentication

    Every bookshelf endpoint requires the token returned by the login endpoint:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


# Exception handlers
@app.exception_handler(BookshelfError)
async def bookshelf_exception_handler(request, exc: BookshelfError):
    """Map domain errors to structured responses."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            code=exc.message_key,
            detail=exc.detail or None,
            status_code=exc.status_code
        ).dict()
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            status_code=exc.status_code
        ).dict(),
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).dict()
    )


def get_service() -> APIDatabaseService:
    """Return the service container or fail the request."""
    if not db_service:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return db_service


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    try:
        db_status = "unavailable"
        collections = None
        if db_service:
            health_info = await db_service.health_check()
            db_status = health_info.get("status", "unknown")
            collections = health_info.get("collections")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.utcnow(),
            version=api_config.api_version,
            database_status=db_status,
            collections=collections
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            timestamp=datetime.utcnow(),
            version=api_config.api_version,
            database_status="unhealthy"
        )


# Auth endpoints
@app.post("/api/v1/auth/login/{provider}", response_model=TokenResponse, tags=["Auth"])
async def social_login(provider: str, request: LoginRequest):
    """
    Log in with an OAuth2 provider access token.

    - **provider**: kakao, naver or google
    - **access_token**: token the client obtained from the provider

    The first login creates the local user; later logins return the same user.
    """
    service = get_service()
    social_provider = parse_provider(provider)
    profile = await service.oauth_client.fetch_profile(social_provider, request.access_token)
    user = await service.provisioner.provision(profile)
    logger.info("User logged in", user_id=user.id, provider=social_provider.value)

    return TokenResponse(
        access_token=create_access_token(user),
        user_id=user.id,
        email=user.email,
        role=user.role.value
    )


# Book search endpoint
@app.get("/api/v1/book/search", response_model=SearchResult, tags=["Books"])
async def search_books(
    text: str,
    page: int = 1,
    size: int = config.default_page_size,
    user_id: int = Depends(get_current_user_id)
):
    """
    Search the external book catalog.

    - **text**: Search text
    - **page**: Page number (starts from 1)
    - **size**: Results per page (1-100)
    """
    return await get_service().search_client.search(text, page, size)


# Bookshelf listing endpoints
@app.get("/api/v1/bookshelf/read", response_model=ReadShelfPage, tags=["Bookshelf"])
async def list_read_shelf(
    page: int = 1,
    size: int = config.default_page_size,
    filter: int = 1,
    user_id: int = Depends(get_current_user_id)
):
    """
    List the read shelf.

    - **page**: Page number (starts from 1)
    - **size**: Entries per page
    - **filter**: 1 newest first, 2 oldest first, 3 highest rating, 4 lowest rating
    """
    return await get_service().query.list(user_id, ShelfKind.READ, page, size, filter)


@app.get("/api/v1/bookshelf/wish", response_model=WishShelfPage, tags=["Bookshelf"])
async def list_wish_shelf(
    page: int = 1,
    size: int = config.default_page_size,
    user_id: int = Depends(get_current_user_id)
):
    """
    List the want-to-read shelf, newest first.
    """
    return await get_service().query.list(user_id, ShelfKind.WISH, page, size)


@app.get("/api/v1/bookshelf/state/{book_id}", response_model=ShelfStateResponse, tags=["Bookshelf"])
async def get_shelf_state(book_id: int, user_id: int = Depends(get_current_user_id)):
    """Report which shelves a book is on for the caller."""
    state = await get_service().mutations.shelf_state(user_id, book_id)
    return ShelfStateResponse(book_id=book_id, state=state, can_shift=state.can_shift)


# Bookshelf detail endpoints
@app.get("/api/v1/bookshelf/read/{entry_id}", response_model=ReadEntry, tags=["Bookshelf"])
async def get_read_entry(entry_id: int, user_id: int = Depends(get_current_user_id)):
    """Get a read entry with its date, rating, tags and review."""
    return await get_service().mutations.get_detail(ShelfKind.READ, entry_id, user_id)


@app.get("/api/v1/bookshelf/wish/{entry_id}", response_model=WishEntry, tags=["Bookshelf"])
async def get_wish_entry(entry_id: int, user_id: int = Depends(get_current_user_id)):
    """Get a want-to-read entry with its reason."""
    return await get_service().mutations.get_detail(ShelfKind.WISH, entry_id, user_id)


# Bookshelf registration endpoints
@app.post("/api/v1/bookshelf/read", response_model=MessageResponse, status_code=status.HTTP_201_CREATED, tags=["Bookshelf"])
async def create_read_entry(payload: ReadEntryCreate, user_id: int = Depends(get_current_user_id)):
    """
    File a book onto the read shelf.

    - **read_date** is required
    - **tags**: at most 5, each sent with `id: 0`
    """
    entry_id = await get_service().mutations.create_entry(ShelfKind.READ, payload, user_id)
    return MessageResponse(message="Bookshelf entry created", id=entry_id)


@app.post("/api/v1/bookshelf/wish", response_model=MessageResponse, status_code=status.HTTP_201_CREATED, tags=["Bookshelf"])
async def create_wish_entry(payload: WishEntryCreate, user_id: int = Depends(get_current_user_id)):
    """File a book onto the want-to-read shelf."""
    entry_id = await get_service().mutations.create_entry(ShelfKind.WISH, payload, user_id)
    return MessageResponse(message="Bookshelf entry created", id=entry_id)


# Bookshelf update endpoints
@app.patch("/api/v1/bookshelf/read/{entry_id}", response_model=MessageResponse, tags=["Bookshelf"])
async def update_read_entry(entry_id: int, payload: ReadEntryFields, user_id: int = Depends(get_current_user_id)):
    """
    Update a read entry.

    - Keep existing tags by sending their id and label
    - New tags use `id: 0`
    - Delete a tag by sending its id with `label: null`
    - Tags not listed are left unchanged
    """
    await get_service().mutations.update_entry(ShelfKind.READ, entry_id, payload, user_id)
    return MessageResponse(message="Bookshelf entry updated", id=entry_id)


@app.patch("/api/v1/bookshelf/wish/{entry_id}", response_model=MessageResponse, tags=["Bookshelf"])
async def update_wish_entry(entry_id: int, payload: WishEntryFields, user_id: int = Depends(get_current_user_id)):
    """Update the reason of a want-to-read entry."""
    await get_service().mutations.update_entry(ShelfKind.WISH, entry_id, payload, user_id)
    return MessageResponse(message="Bookshelf entry updated", id=entry_id)


# Bookshelf delete endpoints
@app.delete("/api/v1/bookshelf/read/{entry_id}", response_model=MessageResponse, tags=["Bookshelf"])
async def delete_read_entry(entry_id: int, user_id: int = Depends(get_current_user_id)):
    """Delete a read entry and its tags."""
    await get_service().mutations.delete_entry(ShelfKind.READ, entry_id, user_id)
    return MessageResponse(message="Bookshelf entry deleted", id=entry_id)


@app.delete("/api/v1/bookshelf/wish/{entry_id}", response_model=MessageResponse, tags=["Bookshelf"])
async def delete_wish_entry(entry_id: int, user_id: int = Depends(get_current_user_id)):
    """Delete a want-to-read entry."""
    await get_service().mutations.delete_entry(ShelfKind.WISH, entry_id, user_id)
    return MessageResponse(message="Bookshelf entry deleted", id=entry_id)


# Shift endpoint
@app.post("/api/v1/bookshelf/shift/{entry_id}", response_model=MessageResponse, tags=["Bookshelf"])
async def shift_to_read(entry_id: int, payload: ReadEntryFields, user_id: int = Depends(get_current_user_id)):
    """
    Move a want-to-read entry onto the read shelf.

    - **entry_id**: id of the want-to-read entry
    - body: read date (required), rating, review and tags of the read entry
    """
    read_entry_id = await get_service().mutations.shift_to_read(entry_id, payload, user_id)
    return MessageResponse(message="Bookshelf entry shifted", id=read_entry_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
