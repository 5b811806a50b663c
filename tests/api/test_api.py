"""
Tests for the FastAPI application.
"""

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, patch

from api.auth import create_access_token, decode_access_token, get_current_user_id
from api.main import app
from bookshelf.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from bookshelf.models import ReadEntry, ReadEntryCreate, ReadEntryFields, ReadShelfPage, ShelfKind, ShelfState, Tag
from catalog.models import BookRef, SearchResult
from members.models import SocialProfile, SocialProvider, User


BOOK = {"isbn": "9781101906118", "title": "The Vegetarian", "author": "Han Kang"}


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def mock_db_service():
    """Mock service container."""
    mock = AsyncMock()
    with patch('api.main.db_service', mock):
        yield mock


@pytest.fixture
def authenticated():
    """Resolve every request to user 1."""
    app.dependency_overrides[get_current_user_id] = lambda: 1
    yield
    app.dependency_overrides.pop(get_current_user_id, None)


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert "status" in data
    assert "timestamp" in data
    assert "version" in data
    assert "database_status" in data


def test_health_check_with_database(client, mock_db_service):
    mock_db_service.health_check.return_value = {"status": "healthy", "collections": {"books": 3}}

    response = client.get("/health")

    data = response.json()
    assert data["status"] == "healthy"
    assert data["collections"] == {"books": 3}


def test_bookshelf_requires_auth(client):
    """Missing bearer token is refused."""
    response = client.get("/api/v1/bookshelf/read")
    assert response.status_code in (401, 403)


def test_invalid_token_refused(client, mock_db_service):
    response = client.get("/api/v1/bookshelf/read", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_real_token_resolves_user(client, mock_db_service):
    token = create_access_token(User(id=42, social_id="s", social_provider=SocialProvider.GOOGLE))
    mock_db_service.query.list.return_value = ReadShelfPage(
        entries=[], total=0, page=1, size=10, total_pages=0, has_next=False, has_prev=False
    )

    response = client.get("/api/v1/bookshelf/read", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    args = mock_db_service.query.list.call_args.args
    assert args[0] == 42
    assert args[1] is ShelfKind.READ


def test_token_round_trip():
    user = User(id=7, email="r@example.com", social_id="s", social_provider=SocialProvider.KAKAO)

    claims = decode_access_token(create_access_token(user))

    assert claims["sub"] == "7"
    assert claims["role"] == "USER"


def test_expired_token_rejected():
    user = User(id=7, social_id="s", social_provider=SocialProvider.KAKAO)
    with pytest.raises(ValueError):
        decode_access_token(create_access_token(user, expires_minutes=-1))


def test_social_login(client, mock_db_service):
    mock_db_service.oauth_client.fetch_profile.return_value = SocialProfile(
        provider=SocialProvider.KAKAO, social_id="3141592653", email="reader@example.com"
    )
    mock_db_service.provisioner.provision.return_value = User(
        id=3, email="reader@example.com", social_id="3141592653", social_provider=SocialProvider.KAKAO
    )

    response = client.post("/api/v1/auth/login/kakao", json={"access_token": "provider-token"})

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == 3
    assert data["token_type"] == "bearer"
    assert decode_access_token(data["access_token"])["sub"] == "3"
    mock_db_service.oauth_client.fetch_profile.assert_awaited_once_with(SocialProvider.KAKAO, "provider-token")


def test_social_login_unknown_provider(client, mock_db_service):
    response = client.post("/api/v1/auth/login/github", json={"access_token": "t"})

    assert response.status_code == 400
    assert response.json()["code"] == "UNSUPPORTED_PROVIDER"


def test_search_books(client, mock_db_service, authenticated):
    mock_db_service.search_client.search.return_value = SearchResult(
        books=[BookRef(**BOOK)], page=2, size=5, total_size=12
    )

    response = client.get("/api/v1/book/search", params={"text": "vegetarian", "page": 2, "size": 5})

    assert response.status_code == 200
    assert response.json()["books"][0]["isbn"] == BOOK["isbn"]
    mock_db_service.search_client.search.assert_awaited_once_with("vegetarian", 2, 5)


def test_search_exhausted_maps_to_404(client, mock_db_service, authenticated):
    mock_db_service.search_client.search.side_effect = NotFoundError("BOOK_NO_MORE_FOUND")

    response = client.get("/api/v1/book/search", params={"text": "rare", "page": 9})

    assert response.status_code == 404
    assert response.json()["code"] == "BOOK_NO_MORE_FOUND"


def test_create_read_entry(client, mock_db_service, authenticated):
    mock_db_service.mutations.create_entry.return_value = 11

    response = client.post("/api/v1/bookshelf/read", json={
        "book": BOOK,
        "read_date": "2024-05-10",
        "rating": 4.5,
        "tags": [{"id": 0, "label": "novel"}],
    })

    assert response.status_code == 201
    assert response.json()["id"] == 11
    kind, payload, user_id = mock_db_service.mutations.create_entry.call_args.args
    assert kind is ShelfKind.READ
    assert isinstance(payload, ReadEntryCreate)
    assert payload.read_date == date(2024, 5, 10)
    assert user_id == 1


def test_create_read_entry_without_book_is_rejected(client, mock_db_service, authenticated):
    response = client.post("/api/v1/bookshelf/read", json={"read_date": "2024-05-10"})

    assert response.status_code == 422
    mock_db_service.mutations.create_entry.assert_not_awaited()


def test_create_duplicate_maps_to_400(client, mock_db_service, authenticated):
    mock_db_service.mutations.create_entry.side_effect = ValidationError("BOOKSHELF_ALREADY_EXISTS")

    response = client.post("/api/v1/bookshelf/wish", json={"book": BOOK, "reason": "club"})

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "BOOKSHELF_ALREADY_EXISTS"
    assert data["status_code"] == 400


def test_exhausted_transaction_conflict_maps_to_409(client, mock_db_service, authenticated):
    mock_db_service.mutations.create_entry.side_effect = ConflictError("CONCURRENT_MODIFICATION", operation="create_entry")

    response = client.post("/api/v1/bookshelf/wish", json={"book": BOOK, "reason": "club"})

    assert response.status_code == 409
    assert response.json()["code"] == "CONCURRENT_MODIFICATION"


def test_get_read_entry(client, mock_db_service, authenticated):
    now = datetime(2024, 5, 10, 12, 0, 0)
    mock_db_service.mutations.get_detail.return_value = ReadEntry(
        id=5, user_id=1, book_id=2, book=BookRef(**BOOK), read_date=date(2024, 5, 10),
        rating=5, tags=[Tag(id=9, label="novel")], created_at=now, updated_at=now,
    )

    response = client.get("/api/v1/bookshelf/read/5")

    assert response.status_code == 200
    data = response.json()
    assert data["tags"] == [{"id": 9, "label": "novel"}]
    assert data["read_date"] == "2024-05-10"
    mock_db_service.mutations.get_detail.assert_awaited_once_with(ShelfKind.READ, 5, 1)


def test_foreign_entry_maps_to_403(client, mock_db_service, authenticated):
    mock_db_service.mutations.update_entry.side_effect = AuthorizationError("BOOKSHELF_FORBIDDEN")

    response = client.patch("/api/v1/bookshelf/wish/5", json={"reason": "mine"})

    assert response.status_code == 403
    assert response.json()["code"] == "BOOKSHELF_FORBIDDEN"


def test_delete_read_entry(client, mock_db_service, authenticated):
    response = client.delete("/api/v1/bookshelf/read/5")

    assert response.status_code == 200
    mock_db_service.mutations.delete_entry.assert_awaited_once_with(ShelfKind.READ, 5, 1)


def test_shift(client, mock_db_service, authenticated):
    mock_db_service.mutations.shift_to_read.return_value = 21

    response = client.post("/api/v1/bookshelf/shift/8", json={"read_date": "2024-07-01", "rating": 3})

    assert response.status_code == 200
    assert response.json()["id"] == 21
    wish_id, payload, user_id = mock_db_service.mutations.shift_to_read.call_args.args
    assert wish_id == 8
    assert isinstance(payload, ReadEntryFields)
    assert user_id == 1


def test_shift_missing_maps_to_404(client, mock_db_service, authenticated):
    mock_db_service.mutations.shift_to_read.side_effect = NotFoundError("BOOKSHELF_NOT_FOUND")

    response = client.post("/api/v1/bookshelf/shift/8", json={"read_date": "2024-07-01"})

    assert response.status_code == 404


def test_shelf_state(client, mock_db_service, authenticated):
    mock_db_service.mutations.shelf_state.return_value = ShelfState.BOTH

    response = client.get("/api/v1/bookshelf/state/2")

    assert response.json() == {"book_id": 2, "state": "both", "can_shift": True}


def test_list_wish_shelf(client, mock_db_service, authenticated):
    from bookshelf.models import WishShelfPage

    mock_db_service.query.list.return_value = WishShelfPage(
        entries=[], total=0, page=1, size=10, total_pages=0, has_next=False, has_prev=False
    )

    response = client.get("/api/v1/bookshelf/wish")

    assert response.status_code == 200
    mock_db_service.query.list.assert_awaited_once_with(1, ShelfKind.WISH, 1, 10)
