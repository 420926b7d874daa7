from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import app.database
from app.config import Settings
from app.database import Database
from app.main import create_app


TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app.database, "_BCRYPT_ROUNDS", 4)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        jwt_secret=TEST_JWT_SECRET,
        upload_root=(tmp_path / "uploads").resolve(),
        database_path=tmp_path / "portal.sqlite3",
        max_upload_bytes=64 * 1024,
    )


@pytest.fixture()
def database(settings: Settings) -> Database:
    db = Database(settings.database_path)
    db.initialize()
    return db


@pytest.fixture()
def admin(database: Database):
    return database.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture()
def app_ctx(settings: Settings, database: Database) -> dict:
    application = create_app(settings, database)
    return {"app": application, "base_dir": settings.upload_root, "database": database}


@pytest.fixture()
def client(app_ctx: dict):
    with TestClient(app_ctx["app"]) as c:
        yield c


@pytest.fixture()
def base_dir(app_ctx: dict) -> Path:
    return app_ctx["base_dir"]


@pytest.fixture()
def auth_headers(app_ctx: dict, admin) -> dict:
    token = app_ctx["app"].state.authenticator.issue_token(admin.id)
    return {"Authorization": f"Bearer {token}"}
