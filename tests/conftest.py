import importlib
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

# Settings are read at import time, so the environment must be prepared
# before anything under app/ is imported.
_tmpdir = tempfile.mkdtemp(prefix="social-saas-tests-")
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_tmpdir, 'app.db').as_posix()}"
os.environ["JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["LOG_DIR"] = _tmpdir

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.database.engine import Database  # noqa: E402
from app.features.users.models import User  # noqa: E402
from app.features.permissions.models import Permission, Role  # noqa: E402
from app.features.accounts.models import Account, AccountUser  # noqa: E402
from app.features.users.auth import create_access_token  # noqa: E402


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{(tmp_path / 'test.db').as_posix()}")
    await db.create_all()
    yield db
    await db.disconnect()


@pytest_asyncio.fixture
async def seeded(database):
    """
    Two roles, four users and two accounts:

    - manager role: manage_billing, publish_content
    - viewer role: view_analytics
    - alice: active manager, member of `main` (can_create, can_analyze only)
    - bob: active viewer, member of `main` with every flag
    - carol: inactive manager; dave: soft-deleted manager
    - `other` account has no members
    """
    async with database.session() as db:
        permissions = {
            name: Permission(name=name)
            for name in ("manage_billing", "publish_content", "view_analytics")
        }
        manager = Role(
            name="manager",
            permissions=[permissions["manage_billing"], permissions["publish_content"]],
        )
        viewer = Role(name="viewer", permissions=[permissions["view_analytics"]])
        db.add_all([*permissions.values(), manager, viewer])
        await db.flush()

        alice = User(email="alice@example.com", name="Alice", role_id=manager.id)
        bob = User(email="bob@example.com", name="Bob", role_id=viewer.id)
        carol = User(email="carol@example.com", name="Carol", role_id=manager.id, is_active=False)
        dave = User(
            email="dave@example.com",
            name="Dave",
            role_id=manager.id,
            deleted_at=datetime.now(timezone.utc),
        )
        main = Account(platform="instagram", name="Main brand", handle="@mainbrand")
        other = Account(platform="x", name="Side project")
        db.add_all([alice, bob, carol, dave, main, other])
        await db.flush()

        db.add_all([
            AccountUser(account_id=main.id, user_id=alice.id, can_create=True, can_analyze=True),
            AccountUser(
                account_id=main.id,
                user_id=bob.id,
                can_create=True,
                can_edit=True,
                can_delete=True,
                can_publish=True,
                can_respond=True,
                can_analyze=True,
            ),
            AccountUser(account_id=main.id, user_id=carol.id, can_publish=True),
        ])

        ids = SimpleNamespace(
            alice=alice.id,
            bob=bob.id,
            carol=carol.id,
            dave=dave.id,
            main=main.id,
            other=other.id,
        )
    return ids


@pytest_asyncio.fixture
async def client(database):
    from app.main import app

    app.state.database = database
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def reload_app(monkeypatch):
    """
    Build a fresh app under different environment settings.

    Settings and middleware are fixed at import time, so the config and main
    modules are reloaded with the patched environment and again on teardown.
    """
    import app.core.config
    import app.main

    def build(**env):
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        importlib.reload(app.core.config)
        return importlib.reload(app.main).app

    yield build

    monkeypatch.undo()
    importlib.reload(app.core.config)
    importlib.reload(app.main)
    access_log = logging.getLogger("app.access")
    for handler in list(access_log.handlers):
        access_log.removeHandler(handler)
        handler.close()
    access_log.propagate = True
    access_log.setLevel(logging.NOTSET)
