import itertools
import os
import tempfile
from pathlib import Path

_DB_DIR = Path(tempfile.mkdtemp(prefix="leadconvert-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'test.db'}"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SENTRY_DSN"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("OPENAI_API_KEY", None)

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel

from leadconvert import db
from leadconvert.agents import outreach

_lead_counter = itertools.count(1)


@pytest_asyncio.fixture
async def database(monkeypatch):
    monkeypatch.setattr(outreach, "_get_client", lambda: None)
    async with db.engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield db
    await db.engine.dispose()


@pytest_asyncio.fixture
async def make_client(database):
    from leadconvert.main import app

    clients = []

    async def factory() -> AsyncClient:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        http = AsyncClient(transport=transport, base_url="http://testserver")
        clients.append(http)
        return http

    yield factory
    for http in clients:
        await http.aclose()


@pytest_asyncio.fixture
async def client(make_client):
    return await make_client()


async def signup(http: AsyncClient, email: str, role: str = "agent", password: str = "secret123") -> dict:
    response = await http.post(
        "/auth/register",
        json={"name": email.split("@")[0].title(), "email": email, "password": password, "role": role},
    )
    assert response.status_code == 201, response.text
    return response.json()["user"]


async def create_lead(session, **fields) -> db.Lead:
    fields.setdefault("name", "Test Lead")
    fields.setdefault("email", f"lead{next(_lead_counter)}@example.com")
    lead = db.Lead(**fields)
    session.add(lead)
    await session.commit()
    await session.refresh(lead)
    return lead
