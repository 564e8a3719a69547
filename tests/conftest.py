import os

# Settings are read at import time; configure before importing the app.
os.environ.setdefault("JWT_SECRET", "test-secret-key-not-for-production")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_JSON", "false")

from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from factories import raw_transaction
from statement_import.domain import StatementImportConfirmed, StatementUpload
from statement_import.schemas.internal import CategoryInfo
from statement_import.services.statement_import import StatementImportService


class FakeUploadRepository:
    """In-memory stand-in for StatementUploadRepository."""

    def __init__(self):
        self.uploads: dict[UUID, StatementUpload] = {}
        self.confirmations: dict[UUID, dict] = {}

    async def get(self, upload_id: UUID) -> StatementUpload | None:
        return self.uploads.get(upload_id)

    async def list_by_user(self, user_id: UUID, skip: int = 0, limit: int = 100):
        owned = [u for u in self.uploads.values() if u.user_id == user_id]
        owned.sort(key=lambda u: u.uploaded_at, reverse=True)
        return owned[skip : skip + limit]

    async def add(self, upload: StatementUpload) -> None:
        self.uploads[upload.id] = upload

    async def save(self, upload: StatementUpload) -> None:
        assert upload.id in self.uploads
        self.uploads[upload.id] = upload

    async def add_confirmation(self, event: StatementImportConfirmed) -> None:
        self.confirmations[event.statement_upload_id] = {
            "event": event,
            "status": "pending",
            "attempts": 1,
            "created_count": 0,
        }

    async def get_pending_confirmation(self, upload_id: UUID):
        confirmation = self.confirmations.get(upload_id)
        if confirmation is None or confirmation["status"] != "pending":
            return None
        return confirmation["event"]

    async def record_confirmation_attempt(self, upload_id: UUID) -> None:
        self.confirmations[upload_id]["attempts"] += 1

    async def complete_confirmation(self, upload_id: UUID, created_count: int) -> None:
        self.confirmations[upload_id]["status"] = "completed"
        self.confirmations[upload_id]["created_count"] += created_count


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def categories() -> list[CategoryInfo]:
    """A small system category snapshot, in provider order."""
    names = ["Groceries", "Dining Out", "Coffee/Tea", "Fitness", "Travel", "Miscellaneous"]
    return [CategoryInfo(id=uuid4(), name=name) for name in names]


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock(spec=AsyncSession)
    db.add = Mock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


@pytest.fixture
def upload_repo() -> FakeUploadRepository:
    return FakeUploadRepository()


@pytest.fixture
def storage(user_id):
    storage = AsyncMock()
    storage.save = AsyncMock(return_value=f"{user_id}/stored.pdf")
    storage.read = AsyncMock(return_value=b"%PDF-1.4 fake")
    storage.delete = AsyncMock()
    return storage


@pytest.fixture
def extractor():
    extractor = AsyncMock()
    extractor.extract = AsyncMock(return_value="03/14 WALMART $42.10\nPrevious Balance $120.00")
    return extractor


@pytest.fixture
def parser():
    parser = AsyncMock()
    parser.parse = AsyncMock(
        return_value=[
            raw_transaction(
                "WALMART",
                "42.10",
                suggested_category_name="Groceries",
                original_text="03/14 WALMART $42.10",
            ),
            raw_transaction("Previous Balance", "120.00", original_text="Previous Balance $120.00"),
        ]
    )
    return parser


@pytest.fixture
def category_provider(categories):
    provider = AsyncMock()
    provider.available_categories = AsyncMock(return_value=categories)
    return provider


@pytest.fixture
def ledger():
    ledger = AsyncMock()
    ledger.create = AsyncMock(return_value=True)
    return ledger


@pytest.fixture
def service(mock_db, storage, extractor, parser, category_provider, ledger, upload_repo):
    return StatementImportService(
        db=mock_db,
        storage=storage,
        extractor=extractor,
        parser=parser,
        categories=category_provider,
        ledger=ledger,
        upload_repo=upload_repo,
    )


@pytest.fixture
def auth_headers(user_id):
    """Provide authentication headers with valid JWT token."""
    from statement_import.core.security import create_access_token

    token = create_access_token(user_id=user_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(service):
    """Provide test client with the import service overridden."""
    from statement_import.api.deps import get_statement_import_service
    from statement_import.main import app

    app.dependency_overrides[get_statement_import_service] = lambda: service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
