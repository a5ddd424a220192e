import os
import tempfile
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-marketplace-suite-0123456789")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'marketplace-bootstrap.db')}",
)

import marketplace.models  # noqa: F401
from marketplace.core.security import hash_password
from marketplace.db.base_class import Base
from marketplace.db.session import get_db
from marketplace.main import app
from marketplace.models.item import Item, ItemType
from marketplace.models.user import User

DEFAULT_PASSWORD = "StrongPass1"


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_file.close()

    engine = create_engine(
        f"sqlite:///{db_file.name}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        os.unlink(db_file.name)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session: Session):
    def _make_user(username: str, is_admin: bool = False, password: str | None = None) -> User:
        user = User(
            username=username,
            # Hashing is slow; only pay for it when a test logs in
            password_hash=hash_password(password) if password else "unusable",
            is_admin=is_admin,
            average_rating=0.0,
            review_count=0,
            reviews=[],
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_item(db_session: Session):
    def _make_item(
        name: str = "Kind of Blue",
        item_type: ItemType = ItemType.VINYL,
        attributes: dict | None = None,
        price: float = 30.0,
    ) -> Item:
        item = Item(
            name=name,
            description=f"{name} description",
            price=price,
            seller="Second Spin Records",
            image=f"https://images.example.com/{name.lower().replace(' ', '-')}.jpg",
            item_type=item_type,
            attributes=attributes if attributes is not None else {"age": 60},
            rating=0.0,
            review_count=0,
            reviews=[],
        )
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _make_item


@pytest.fixture()
def login(client: TestClient):
    def _login(username: str, password: str = DEFAULT_PASSWORD):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": username, "password": password},
        )
        assert response.status_code == 200
        return response

    return _login
