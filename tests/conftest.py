"""
Pytest configuration and shared fixtures.
"""

import copy
import itertools

import pytest
import pytest_asyncio
from pymongo.errors import DuplicateKeyError

from bookshelf.database import MongoDBManager
from bookshelf.query import ShelfQueryEngine
from bookshelf.service import ShelfMutationService
from bookshelf.store import ShelfEntryStore
from bookshelf.tags import TagRegistry
from catalog.books import BookRepository
from catalog.models import BookRef
from members.provisioner import IdentityProvisioner


# In-memory stand-in for the parts of motor the services use.

def _matches(doc, query):
    for key, condition in (query or {}).items():
        value = doc.get(key)
        if isinstance(condition, dict) and any(op.startswith("$") for op in condition):
            for op, operand in condition.items():
                if op == "$in":
                    if value not in operand:
                        return False
                elif op == "$ne":
                    if value == operand:
                        return False
                else:
                    raise NotImplementedError(op)
        elif value != condition:
            return False
    return True


def _sort_key(value):
    # MongoDB orders null before any number or date
    return (0, 0) if value is None else (1, value)


class FakeResult:
    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._sort = []
        self._skip = 0
        self._limit = 0

    def sort(self, key_or_list, direction=None):
        if isinstance(key_or_list, str):
            self._sort = [(key_or_list, direction or 1)]
        else:
            self._sort = list(key_or_list)
        return self

    def skip(self, count):
        self._skip = count
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _materialize(self):
        docs = list(self._docs)
        for key, direction in reversed(self._sort):
            docs.sort(key=lambda d: _sort_key(d.get(key)), reverse=direction < 0)
        docs = docs[self._skip:]
        if self._limit:
            docs = docs[:self._limit]
        return [copy.deepcopy(doc) for doc in docs]

    async def to_list(self, length=None):
        docs = self._materialize()
        return docs if length is None else docs[:length]

    def __aiter__(self):
        self._iter = iter(self._materialize())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, database, name):
        self.database = database
        self.name = name
        self.unique_indexes = []

    @property
    def _docs(self):
        return self.database._data.setdefault(self.name, [])

    def _log(self, op, session):
        self.database.write_log.append((self.name, op, session))

    def _check_unique(self, doc, ignore=None):
        for other in self._docs:
            if other is ignore:
                continue
            if other["_id"] == doc["_id"]:
                raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: _id_")
            for fields in self.unique_indexes:
                if all(other.get(field) == doc.get(field) for field in fields):
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {fields}")

    @staticmethod
    def _apply_update(doc, update, inserting=False):
        for op, values in update.items():
            if op == "$set":
                doc.update(copy.deepcopy(values))
            elif op == "$setOnInsert":
                if inserting:
                    doc.update(copy.deepcopy(values))
            elif op == "$inc":
                for key, amount in values.items():
                    doc[key] = doc.get(key, 0) + amount
            else:
                raise NotImplementedError(op)

    async def create_index(self, keys, unique=False, **kwargs):
        fields = [keys] if isinstance(keys, str) else [key for key, _ in keys]
        if unique and fields not in self.unique_indexes:
            self.unique_indexes.append(fields)
        return "_".join(fields)

    async def find_one(self, filter=None, session=None, **kwargs):
        for doc in self._docs:
            if _matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    def find(self, filter=None, session=None, **kwargs):
        return FakeCursor([doc for doc in self._docs if _matches(doc, filter)])

    async def count_documents(self, filter, session=None, **kwargs):
        return sum(1 for doc in self._docs if _matches(doc, filter))

    async def insert_one(self, doc, session=None):
        self._log("insert_one", session)
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", next(self.database.object_ids))
        self._check_unique(doc)
        self._docs.append(doc)
        return FakeResult(inserted_id=doc["_id"])

    async def update_one(self, filter, update, upsert=False, session=None):
        self._log("update_one", session)
        for doc in self._docs:
            if _matches(doc, filter):
                candidate = copy.deepcopy(doc)
                self._apply_update(candidate, update)
                self._check_unique(candidate, ignore=doc)
                modified = candidate != doc
                doc.clear()
                doc.update(candidate)
                return FakeResult(matched_count=1, modified_count=int(modified), upserted_id=None)
        return FakeResult(matched_count=0, modified_count=0, upserted_id=None)

    async def find_one_and_update(self, filter, update, upsert=False, return_document=False, session=None, **kwargs):
        self._log("find_one_and_update", session)
        for doc in self._docs:
            if _matches(doc, filter):
                before = copy.deepcopy(doc)
                self._apply_update(doc, update)
                return copy.deepcopy(doc) if return_document else before
        if not upsert:
            return None
        doc = {key: value for key, value in filter.items() if not isinstance(value, dict)}
        self._apply_update(doc, update, inserting=True)
        doc.setdefault("_id", next(self.database.object_ids))
        self._check_unique(doc)
        self._docs.append(doc)
        return copy.deepcopy(doc) if return_document else None

    async def delete_one(self, filter, session=None):
        self._log("delete_one", session)
        for index, doc in enumerate(self._docs):
            if _matches(doc, filter):
                del self._docs[index]
                return FakeResult(deleted_count=1)
        return FakeResult(deleted_count=0)

    async def delete_many(self, filter, session=None):
        self._log("delete_many", session)
        keep = [doc for doc in self._docs if not _matches(doc, filter)]
        deleted = len(self._docs) - len(keep)
        self._docs[:] = keep
        return FakeResult(deleted_count=deleted)


class FakeDatabase:
    def __init__(self, client, name):
        self.client = client
        self.name = name
        self._data = {}
        self._collections = {}
        self.object_ids = itertools.count(1)
        self.write_log = []

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(self, name)
        return self._collections[name]

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    async def command(self, name, **kwargs):
        return {"ok": 1.0}


class FakeTransaction:
    def __init__(self, session):
        self.session = session
        self.snapshot = None

    async def __aenter__(self):
        self.snapshot = self.session.client.snapshot()
        self.session.in_transaction = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.session.in_transaction = False
        if exc_type is not None:
            self.session.client.restore(self.snapshot)
            self.session.client.aborted += 1
        else:
            self.session.client.committed += 1
        return False


class FakeSession:
    def __init__(self, client):
        self.client = client
        self.in_transaction = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def start_transaction(self):
        return FakeTransaction(self)


class FakeAdmin:
    async def command(self, name, **kwargs):
        return {"ok": 1.0}


class FakeMotorClient:
    """Single-process MongoDB double with all-or-nothing transactions."""

    def __init__(self):
        self._databases = {}
        self.admin = FakeAdmin()
        self.committed = 0
        self.aborted = 0
        self.closed = False

    def __getitem__(self, name):
        if name not in self._databases:
            self._databases[name] = FakeDatabase(self, name)
        return self._databases[name]

    async def start_session(self):
        return FakeSession(self)

    def snapshot(self):
        return {name: copy.deepcopy(db._data) for name, db in self._databases.items()}

    def restore(self, snapshot):
        for name, data in snapshot.items():
            db = self._databases[name]
            db._data.clear()
            db._data.update(data)

    def close(self):
        self.closed = True


# Fixtures

@pytest.fixture
def mongo_client():
    """Create an in-memory MongoDB client."""
    return FakeMotorClient()


@pytest_asyncio.fixture
async def db_manager(mongo_client):
    """Create a connected MongoDB manager over the in-memory client."""
    manager = MongoDBManager(
        connection_url="mongodb://localhost:27017/?replicaSet=rs0",
        database_name="reading_shelf_test",
        client=mongo_client,
        transaction_retry_attempts=2,
    )
    await manager.connect()
    return manager


@pytest.fixture
def tag_registry(db_manager):
    return TagRegistry(db_manager, max_tags=5)


@pytest.fixture
def book_repository(db_manager):
    return BookRepository(db_manager)


@pytest.fixture
def shelf_store(db_manager, tag_registry, book_repository):
    return ShelfEntryStore(db_manager, tag_registry, book_repository)


@pytest.fixture
def query_engine(shelf_store):
    return ShelfQueryEngine(shelf_store, max_page_size=100)


@pytest.fixture
def mutation_service(db_manager, shelf_store, tag_registry, book_repository):
    return ShelfMutationService(db_manager, shelf_store, tag_registry, book_repository)


@pytest.fixture
def provisioner(db_manager):
    return IdentityProvisioner(db_manager)


@pytest.fixture
def sample_book():
    """Create a sample catalog book."""
    return BookRef(
        isbn="9781101906118",
        title="The Vegetarian",
        author="Han Kang",
        cover_image="https://example.com/covers/vegetarian.jpg",
        publisher="Hogarth",
        pubdate="20160202",
    )


@pytest.fixture
def make_book():
    """Factory for distinct catalog books."""
    def _make(number: int) -> BookRef:
        return BookRef(isbn=f"97800000{number:05d}", title=f"Book {number}", author="Test Author")
    return _make
