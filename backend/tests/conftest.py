import os
import tempfile

# Settings are read at import time, so the environment has to be in place first
_TMP_DIR = tempfile.mkdtemp(prefix="stockroom-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP_DIR, 'default.db')}")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost,127.0.0.1")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "100000")

import pytest
from fastapi.testclient import TestClient

from stockroom.api.deps import get_db
from stockroom.core.rate_limiter import rate_limiter
from stockroom.db.init_db import init_db
from stockroom.db.session import make_engine, make_session_factory
from stockroom.main import app
from stockroom.models.user import User
from stockroom.core.security import get_password_hash
from stockroom.services import catalog_service, ledger_service

PASSWORD = "Sup3r-Secret!pw"


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'stockroom.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def org(db):
    return catalog_service.create_organization(db, "Acme Supplies")


@pytest.fixture
def other_org(db):
    return catalog_service.create_organization(db, "Globex Trading")


@pytest.fixture
def product(db, org):
    return catalog_service.create_product(db, org.id, "Hex Bolt M8", sku="HB-M8", base_price="0.40")


@pytest.fixture
def stocked_product(db, org, product):
    """Product seeded with 10 units."""
    ledger_service.apply_transaction(db, org.id, product.id, "INITIAL", 10, actor="seed")
    return product


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    rate_limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(email, organization_id=None):
        user = User(email=email, hashed_password=get_password_hash(PASSWORD), organization_id=organization_id)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def login(client):
    """Log in through the API and return bearer headers."""
    def _login(email, password=PASSWORD):
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _login
