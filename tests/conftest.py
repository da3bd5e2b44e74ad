import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from datetime import datetime, timezone  # noqa: E402
from unittest.mock import Mock, patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from whatsapp_desk.config import settings  # noqa: E402
from whatsapp_desk.database import Base, get_db  # noqa: E402
from whatsapp_desk.main import app  # noqa: E402
from whatsapp_desk.models import Customer  # noqa: E402
from whatsapp_desk.schemas.webhook import InboundMessage  # noqa: E402

# Monday 2024-05-06 10:00 in Africa/Johannesburg
MONDAY_MORNING = datetime(2024, 5, 6, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def sqlite_db():
    """Real session on an in-memory SQLite database shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """Hermetic settings: no real credentials, media stored under tmp_path."""
    monkeypatch.setattr(settings, "verify_token", "verify-me")
    monkeypatch.setattr(settings, "whatsapp_token", "test-token")
    monkeypatch.setattr(settings, "phone_number_id", "1234567890")
    monkeypatch.setattr(settings, "graph_api_base_url", "https://graph.facebook.com")
    monkeypatch.setattr(settings, "graph_api_version", "v17.0")
    monkeypatch.setattr(settings, "app_secret", "")
    monkeypatch.setattr(settings, "admin_api_token", "")
    monkeypatch.setattr(settings, "splynx_base_url", "https://splynx.example.com/api/2.0")
    monkeypatch.setattr(settings, "splynx_api_key", "")
    monkeypatch.setattr(settings, "splynx_api_secret", "")
    monkeypatch.setattr(settings, "alert_bot_token", "")
    monkeypatch.setattr(settings, "alert_chat_id", "")
    monkeypatch.setattr(settings, "http_timeout_seconds", 10.0)
    monkeypatch.setattr(settings, "company_name", "Vinet")
    monkeypatch.setattr(settings, "operator_timezone", "Africa/Johannesburg")
    monkeypatch.setattr(settings, "media_storage_dir", str(tmp_path / "media"))
    monkeypatch.setattr(settings, "public_base_url", "http://testserver")
    return settings


@pytest.fixture
def sent_messages():
    """Capture outbound WhatsApp sends instead of calling the Graph API."""
    sent = []

    def _fake_send(phone, text):
        sent.append((phone, text))
        return True

    with patch("whatsapp_desk.services.whatsapp_service.send_text", side_effect=_fake_send):
        yield sent


@pytest.fixture
def client(sqlite_db):
    app.dependency_overrides[get_db] = lambda: sqlite_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def verified_customer(sqlite_db):
    customer = Customer(
        phone="27821112222",
        name="Jane Doe",
        email="jane@example.com",
        customer_id="10042",
        verified=True,
    )
    sqlite_db.add(customer)
    sqlite_db.commit()
    return customer


def text_message(phone: str, body: str) -> InboundMessage:
    return InboundMessage.model_validate({"from": phone, "id": "wamid.1", "type": "text", "text": {"body": body}})


def webhook_body(message: dict) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "1", "changes": [{"field": "messages", "value": {"messages": [message]}}]}],
    }
