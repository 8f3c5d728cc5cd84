"""pytest configuration: sets required env vars before any app module is imported."""

import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="onenote-tests-")

# Must be set before importing main/routers/auth (raises SystemExit if missing)
os.environ.setdefault("JWT_SECRET", "test-only-secret-do-not-use-in-prod")
# File-backed SQLite so background processing sessions see the same data
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/test.db"
os.environ["UPLOAD_FOLDER"] = os.path.join(_TMP, "uploads")
os.environ["AI_GATEWAY_API_KEY"] = ""
os.environ["LOVABLE_API_KEY"] = ""
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ["CELERY_ENABLED"] = "false"
os.environ["S3_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"

import pytest
from httpx import AsyncClient, ASGITransport


class FakeLLM:
    """Stands in for services.llm.LLMService; records every call."""

    def __init__(self, reply="", error=None, configured=True):
        self.reply = reply
        self.error = error
        self.configured = configured
        self.calls = []

    async def complete(self, messages, model):
        self.calls.append({"messages": messages, "model": model})
        if self.error is not None:
            raise self.error
        return self.reply

    def complete_sync(self, messages, model):
        self.calls.append({"messages": messages, "model": model})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_llm(monkeypatch):
    """Swap the gateway client used by the note processor and the tutor."""
    from services.registry import note_processor, tutor

    llm = FakeLLM()
    monkeypatch.setattr(note_processor, "_llm", llm)
    monkeypatch.setattr(tutor, "_llm", llm)
    return llm


@pytest.fixture
async def client():
    """Return an AsyncClient wired to the FastAPI app with a fresh database."""
    # Import here so env vars are already set
    from main import app
    from database import Base, engine
    import models_async  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


async def signup(client, email="test@example.com", password="Password123", name="Test User"):
    return await client.post("/auth/signup", json={"name": name, "email": email, "password": password})


@pytest.fixture
async def auth_headers(client):
    res = await signup(client)
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
async def other_headers(client):
    res = await signup(client, email="other@example.com", name="Other User")
    return {"Authorization": f"Bearer {res.json()['access_token']}"}
