import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# It is important to set environment variables before importing app modules
import os
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ENVIRONMENT"] = "testing"

from recipe_catalog import crud, schemas
from recipe_catalog.db.session import Base, get_db
from recipe_catalog.exceptions import ImageStorageError
from recipe_catalog.images import StoredImage, get_image_storage
from recipe_catalog.main import app

# Every test gets a fresh in-memory database
engine = create_engine(
    "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeImageStorage:
    """
    In-memory image storage recording every call.

    fail_upload_at: the n-th upload (1-based) and every later one fail.
    fail_delete: every delete fails.
    """

    def __init__(self, fail_upload_at=None, fail_delete=False):
        self.fail_upload_at = fail_upload_at
        self.fail_delete = fail_delete
        self.stored = {}
        self.deleted = []
        self.uploads = 0

    def upload(self, content: bytes) -> StoredImage:
        self.uploads += 1
        if self.fail_upload_at is not None and self.uploads >= self.fail_upload_at:
            raise ImageStorageError("upload refused")
        storage_id = f"img-{self.uploads}"
        self.stored[storage_id] = content
        return StoredImage(storage_id=storage_id, url=f"/media/{storage_id}.jpg")

    def delete(self, storage_id: str) -> None:
        if self.fail_delete:
            raise ImageStorageError("delete refused")
        self.stored.pop(storage_id, None)
        self.deleted.append(storage_id)


@pytest.fixture(scope="session", autouse=True)
def remove_app_database():
    # main.py creates tables on the configured DATABASE_URL at import
    yield
    if os.path.exists("./test.db"):
        os.remove("./test.db")


@pytest.fixture()
def db_engine():
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(db_engine) -> Generator:
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def storage() -> FakeImageStorage:
    return FakeImageStorage()


@pytest.fixture()
def client(db_engine, storage) -> Generator:
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    """
    Create a user directly in the database.
    """
    def _make_user(email, password="password", role="USER"):
        return crud.create_user(db, schemas.UserCreate(email=email, password=password), role=role)
    return _make_user


@pytest.fixture()
def auth_headers(client):
    """
    Create a user and log in through the API, returning bearer headers.
    """
    def _auth_headers(email, password="password", is_admin=False):
        session = TestingSessionLocal()
        try:
            crud.create_user(
                session,
                schemas.UserCreate(email=email, password=password),
                role="USER,ADMIN" if is_admin else "USER",
            )
        finally:
            session.close()

        response = client.post("/auth/token", data={"username": email, "password": password})
        assert response.status_code == 200
        token = response.json()["access_token"]
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest.fixture()
def recipe_draft():
    def _recipe_draft(**overrides):
        data = {
            "name": "Pancakes",
            "difficulty": 2,
            "prepare_time": 20,
            "servings": 4,
            "category": "breakfast",
            "is_public": True,
            "language": "en",
            "ingredients": [
                {"name": "flour", "quantity": 200, "unit": "g"},
                {"name": "milk", "quantity": 0.5, "unit": "l"},
            ],
            "steps": [{"content": "Mix everything."}, {"content": "Fry."}],
        }
        data.update(overrides)
        return schemas.RecipeCreate(**data)
    return _recipe_draft
