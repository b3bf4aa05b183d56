"""
Shared pytest configuration for ladder tests.

Engine tests run against both storage backends: a SQLite database (through
aiosqlite) created fresh for every test, and a JSON document in a temporary
directory.
"""

import os

# Must be set before the API package is imported: disables rate limiting
os.environ["ENV"] = "test"
# Keeps the module-level engine off the production driver
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./ladder_test.db")

import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from ladder.database.db import build_engine, build_session_factory, init_database
from ladder.models.records import AdminUser, Identity, Player
from ladder.services.role_service import StorageRoleStore
from ladder.storage.document_storage import DocumentStorage
from ladder.storage.sql_storage import SqlStorage


async def _sqlite_storage(tmp_path):
    # NullPool: every transaction opens its own connection
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ladder.db'}", poolclass=NullPool)
    await init_database(engine)
    return SqlStorage(build_session_factory(engine), engine=engine)


@pytest_asyncio.fixture
async def sql_storage(tmp_path):
    """Relational storage on a throwaway SQLite file."""
    storage = await _sqlite_storage(tmp_path)
    yield storage
    await storage.close()


@pytest.fixture
def document_storage(tmp_path):
    return DocumentStorage(str(tmp_path / "ladder_db.json"))


@pytest_asyncio.fixture(params=["sql", "document"])
async def storage(request, tmp_path):
    """Each engine test runs once per storage backend."""
    if request.param == "document":
        yield DocumentStorage(str(tmp_path / "ladder_db.json"))
        return

    sql = await _sqlite_storage(tmp_path)
    yield sql
    await sql.close()


@pytest.fixture
def roles(storage):
    return StorageRoleStore(storage)


@pytest_asyncio.fixture
async def admin(storage) -> Identity:
    """An administrator with no player profile."""
    await storage.add_admin(AdminUser(account_id="admin-account", email="admin@example.com"))
    return Identity(account_id="admin-account", display_name="Admin", email="admin@example.com")


@pytest.fixture
def make_player(storage):
    """Factory creating a player, optionally linked to an account."""

    async def _make(name: str, account_id: str = None, **fields) -> Player:
        player = Player(name=name, account_id=account_id, **fields)
        await storage.create_player(player)
        return player

    return _make


@pytest.fixture
def as_account():
    """Build the verified identity for an account id."""

    def _identity(account_id: str) -> Identity:
        return Identity(
            account_id=account_id,
            display_name=account_id,
            email=f"{account_id}@example.com",
        )

    return _identity
