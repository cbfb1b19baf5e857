"""
Test fixtures - in-memory SQLite database, seeded user/integrations and
HTTP clients bound to the FastAPI app
"""
import base64
from typing import Any, List, Optional

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from clariti.database import Base, get_db
from clariti.main import app
from clariti.models.integration import Integration, IntegrationProvider
from clariti.models.user import User


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Insert baseline test data: user + Canvas and Google integrations"""
    user = User(email="student@school.edu", full_name="Test Student")
    db_session.add(user)
    await db_session.flush()

    canvas = Integration(
        user_id=user.id,
        provider=IntegrationProvider.CANVAS,
        access_token="canvas-token",
        integration_metadata={"canvasUrl": "https://canvas.test"},
    )
    google = Integration(
        user_id=user.id,
        provider=IntegrationProvider.GOOGLE,
        access_token="google-token",
        refresh_token="google-refresh",
    )
    db_session.add_all([canvas, google])
    await db_session.commit()
    await db_session.refresh(user)

    return {"user": user, "canvas": canvas, "google": google}


@pytest_asyncio.fixture()
async def client(db_session, seed_data):
    """httpx AsyncClient identifying as the seeded user"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers["X-User-Id"] = str(seed_data["user"].id)
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session):
    """httpx AsyncClient without a user header"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()


# --- Helpers shared by test modules ---

class FakeProviderClient:
    """Stands in for a provider REST client; returns canned raw records"""

    def __init__(self, items: Optional[List[Any]] = None, error: Optional[Exception] = None):
        self.items = items or []
        self.error = error
        self.calls = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def fetch_items(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


def b64url(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def gmail_message(message_id: str, subject: str, body: str, sender: str = "prof@school.edu",
                  date_header: str = "Mon, 19 Oct 2026 09:00:00 +0000") -> dict:
    return {
        "id": message_id,
        "snippet": body[:100],
        "internalDate": "1792400400000",
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": sender},
                {"name": "Date", "value": date_header},
            ],
            "body": {"data": b64url(body)},
        },
    }
