import os

from cryptography.fernet import Fernet

os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CREDENTIAL_MASTER_KEY", Fernet.generate_key().decode())
os.environ.setdefault("WHATSAPP_API_BASE", "https://graph.example.test")
os.environ.pop("BUSINESS_OWNER_ID", None)
os.environ.pop("WHATSAPP_VERIFY_TOKEN", None)
os.environ.pop("AWS_BUCKET_NAME", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from wabridge.db import Base, SessionLocal, engine, get_db  # noqa: E402
import wabridge.models  # noqa: E402,F401

pytest_plugins = [
    "tests.fixtures.account_fixtures",
    "tests.fixtures.group_fixtures",
    "tests.fixtures.message_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test on the in-memory SQLite engine."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db, setup_account):
    """Client with db override, authenticated as setup_account."""
    from wabridge.main import create_app

    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, headers={"X-Account-Id": setup_account.id}) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def anonymous_client(db):
    """Client with db override and no account header (webhooks)."""
    from wabridge.main import create_app

    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
