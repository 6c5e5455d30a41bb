import os

# Settings are read at import time; point them at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JSON_LOGS", "false")

import random  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tokenhub.core.exceptions import MirrorSyncError  # noqa: E402
from tokenhub.core.token_strings import TokenStringFactory  # noqa: E402
from tokenhub.models import Base, Payment, Product, User  # noqa: E402
from tokenhub.models.user import UserRole  # noqa: E402


class FakeHubClient:
    """In-memory stand-in for HubMirrorClient that records every call."""

    def __init__(self, fail_with=None, products=None):
        self.fail_with = fail_with
        self.products = products or []
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_with:
            raise MirrorSyncError(self.fail_with)

    async def upsert_tokens(self, token_type, rows):
        self._record("upsert_tokens", token_type, rows)
        return len(rows)

    async def update_credits(self, token_type, token_string, credits):
        self._record("update_credits", token_type, token_string, credits)

    async def set_activated(self, token_type, token_string, activated=True):
        self._record("set_activated", token_type, token_string, activated)

    async def fetch_visible_products(self):
        self._record("fetch_visible_products")
        return list(self.products)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def token_factory():
    return TokenStringFactory(random.Random(1234))


@pytest.fixture
def hub():
    return FakeHubClient()


def _add_user(db, email, role=UserRole.USER.value):
    user = User(email=email, role=role, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return _add_user(db, "alice@tokenhub.io")


@pytest.fixture
def other_user(db):
    return _add_user(db, "bob@tokenhub.io")


@pytest.fixture
def admin_user(db):
    return _add_user(db, "admin@tokenhub.io", role=UserRole.ADMIN.value)


@pytest.fixture
def product(db):
    row = Product(product_id="gpt-basic", name="GPT Basic", value_credits_usd=Decimal("0.01"))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def fund(db):
    """Add a confirmed payment for a user."""

    counter = {"n": 0}

    def _fund(user_id, amount, status="finished"):
        counter["n"] += 1
        payment = Payment(
            user_id=user_id,
            order_id=f"{user_id}_1700000000_fund{counter['n']}",
            status=status,
            amount_usd=Decimal(str(amount)),
            currency="USD",
        )
        db.add(payment)
        db.commit()
        return payment

    return _fund


@pytest.fixture
def app(db):
    """Application wired to the test session; auth goes through real JWT checks."""
    from tokenhub.database.session import get_db
    from tokenhub.main import create_app

    application = create_app()

    def override_get_db():
        yield db

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)


def auth_header(user):
    from tokenhub.core.security import create_access_token

    token = create_access_token({"user_id": user.id, "sub": user.email})
    return {"Authorization": f"Bearer {token}"}
