"""Pytest configuration and fixtures for tests."""

import os
from collections.abc import AsyncGenerator

os.environ.setdefault("DATABASE_URL", "sqlite:///./gestioncartes_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "staging")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gestioncartes.db.session import Database
from gestioncartes.services.actor import Actor
from gestioncartes.services.journal_recorder import ActionRecorder


@pytest_asyncio.fixture(scope="function")
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """A throwaway SQLite database with the full schema."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def recorder(database: Database) -> ActionRecorder:
    return ActionRecorder(database.session_factory)


@pytest.fixture
def admin() -> Actor:
    return Actor(
        user_id="u-admin",
        user_name="admin",
        full_name="Awa Traore",
        role="Administrateur",
        agency="Abidjan",
    )


@pytest.fixture
def operator() -> Actor:
    return Actor(
        user_id="u-op",
        user_name="operateur1",
        full_name="Koffi Yao",
        role="Opérateur",
        agency="Bouake",
    )


@pytest.fixture
def carte_data() -> dict:
    return {
        "LIEU D'ENROLEMENT": "Abidjan Plateau",
        "SITE DE RETRAIT": "Cocody",
        "RANGEMENT": "A-12",
        "NOM": "KOUAME",
        "PRENOMS": "Jean",
        "DATE DE NAISSANCE": "1988-02-01",
        "LIEU NAISSANCE": "Yamoussoukro",
        "CONTACT": "0700000000",
    }


@pytest_asyncio.fixture(scope="function")
async def client(database: Database) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client bound to the test database."""
    from gestioncartes.main import create_app

    app = create_app(database=database)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
