import tempfile

import pytest
from fastapi.testclient import TestClient

from toolrent.config import Settings
from toolrent.db.connection import run_migrations
from toolrent.main import create_app
from toolrent.models.submission import Moderator
from toolrent.repositories.product_repository import ProductRepository
from toolrent.repositories.submission_repository import SubmissionRepository
from toolrent.services.moderation_service import ModerationService

MODERATOR_TOKEN = "test-moderator-token"

DRILL_PAYLOAD = {
    "toolName": "مثقاب",
    "category": "أدوات",
    "dailyPrice": "50",
    "brand": "Bosch",
    "city": "الرباط",
    "ownerName": "سعيد",
    "contactPhone": "0600000000",
    "hasDelivery": True,
    "deliveryPrice": "20",
    "images": ["https://img.example/drill.jpg"],
}


@pytest.fixture
def drill_payload():
    return dict(DRILL_PAYLOAD)


@pytest.fixture
def db_path():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    run_migrations(path)
    return path


@pytest.fixture
def products(db_path):
    return ProductRepository(db_path)


@pytest.fixture
def submissions(db_path):
    return SubmissionRepository(db_path)


@pytest.fixture
def service(submissions, products):
    return ModerationService(submissions, products)


@pytest.fixture
def moderator():
    return Moderator(name="admin")


@pytest.fixture
def existing_product(products):
    """A visible catalogue entry to target with modify/delete requests."""
    return products.create(
        {"name": "X", "category": "أدوات", "daily_price": 100.0, "city": "سلا", "brand": "Makita"}
    )


@pytest.fixture
def settings(db_path):
    return Settings(DB_PATH=db_path, MODERATOR_TOKENS={MODERATOR_TOKEN: "admin"}, LOG_LEVEL="warning")


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def moderator_headers():
    return {"Authorization": f"Bearer {MODERATOR_TOKEN}"}
