"""Pytest configuration and fixtures."""

import base64
import os
import tempfile

# Settings are read once at import time; point them at a throwaway database first.
_TEST_DIR = tempfile.mkdtemp(prefix="studyspace-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "development"
os.environ.pop("ADMIN_PASSWORD", None)
os.environ.pop("OPENROUTER_API_KEY", None)

import pymupdf  # noqa: E402
import pytest  # noqa: E402
from collections.abc import AsyncGenerator  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from studyspace.api.deps import get_llm_client  # noqa: E402
from studyspace.db import models  # noqa: E402, F401
from studyspace.db.base import Base  # noqa: E402
from studyspace.db.session import engine  # noqa: E402
from studyspace.main import app  # noqa: E402
from studyspace.services.llm_client import AIServiceError  # noqa: E402


class FakeLLM:
    """Stands in for OpenRouterClient; replies are queued per test."""

    def __init__(self):
        self.replies: list[str] = []
        self.default_reply = "Fake reply."
        self.stream_chunks = ["Hel", "lo"]
        self.calls: list[dict] = []
        self.image_models: list[str] = []
        self.image_url: str | None = "https://images.example/infographic.png"
        self.error: AIServiceError | None = None

    def queue(self, *replies: str) -> None:
        self.replies.extend(replies)

    async def complete(self, messages, **kwargs) -> str:
        self.calls.append({"messages": messages, **kwargs})
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else self.default_reply

    async def stream(self, messages, **kwargs):
        self.calls.append({"messages": messages, **kwargs})
        for chunk in self.stream_chunks:
            yield chunk

    async def generate_image(self, prompt, *, model, size="1024x1024") -> str:
        self.image_models.append(model)
        if self.image_url is None:
            raise AIServiceError(f"{model} unavailable", 502)
        return self.image_url

    @property
    def last_prompt(self) -> str:
        return "\n".join(m["content"] for m in self.calls[-1]["messages"])


def make_pdf(*pages: str) -> bytes:
    """Build a small text PDF."""
    doc = pymupdf.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def pdf_base64(*pages: str) -> str:
    return base64.b64encode(make_pdf(*pages)).decode("ascii")


@pytest.fixture(autouse=True)
async def database() -> AsyncGenerator[None, None]:
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def fake_llm() -> FakeLLM:
    llm = FakeLLM()
    app.dependency_overrides[get_llm_client] = lambda: llm
    yield llm
    app.dependency_overrides.pop(get_llm_client, None)


async def register(client: AsyncClient, username: str = "alice", password: str = "secret123") -> dict:
    """Create an account and return bearer auth headers for it."""
    response = await client.post(
        "/api/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 201, response.text
    # Tests authenticate with the header only
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
async def auth_headers(client: AsyncClient) -> dict:
    return await register(client)
