"""Pytest configuration and fixtures for tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from carmarket.database import Base, enable_sqlite_foreign_keys
from carmarket.models.listing import Listing
from carmarket.models.listing_image import ListingImage
from carmarket.services.session_service import Principal
from carmarket.utils.exceptions import IdentityProviderError, StorageError

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


class FakeStorage:
    """In-memory stand-in for StorageClient."""

    bucket = "car-images"

    def __init__(self, fail_on_upload: int | None = None) -> None:
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.upload_calls = 0
        self.fail_on_upload = fail_on_upload
        self.fail_remove = False

    def get_public_url(self, path: str) -> str:
        return f"https://cdn.test/{self.bucket}/{path}"

    async def upload(self, path: str, content: bytes, content_type: str | None = None) -> str:
        index = self.upload_calls
        self.upload_calls += 1
        if self.fail_on_upload is not None and index == self.fail_on_upload:
            raise StorageError(f"upload {index} rejected")
        if path in self.objects:
            raise StorageError(f"{path} already exists")
        self.objects[path] = content
        return path

    async def remove(self, paths: list[str]) -> None:
        if self.fail_remove:
            raise StorageError("remove failed")
        for path in paths:
            self.objects.pop(path, None)
            self.removed.append(path)


class FakeIdentity:
    """In-memory stand-in for IdentityClient keyed by access token."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.passwords: dict[str, tuple[str, str]] = {}
        self.signed_out: list[str] = []
        self.reset_requests: list[str] = []
        self.unreachable = False

    def add_user(
        self,
        token: str,
        user_id: str,
        *,
        email: str | None = None,
        password: str = "secret123",
        **metadata: Any,
    ) -> dict[str, Any]:
        user = {"id": user_id, "email": email or f"{user_id}@example.com", "user_metadata": metadata}
        self.users[token] = user
        self.passwords[user["email"]] = (password, token)
        return user

    def _check(self) -> None:
        if self.unreachable:
            raise IdentityProviderError("Identity provider unreachable")

    async def get_user(self, access_token: str) -> dict[str, Any]:
        self._check()
        if access_token not in self.users:
            raise IdentityProviderError("invalid JWT", 401)
        return self.users[access_token]

    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        self._check()
        expected = self.passwords.get(email)
        if expected is None or expected[0] != password:
            raise IdentityProviderError("Invalid login credentials", 400)
        token = expected[1]
        return {"access_token": token, "refresh_token": f"refresh-{token}", "user": self.users[token]}

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
        self._check()
        return {"id": "new-user", "email": email, "user_metadata": metadata or {}}

    def get_oauth_url(self, provider: str, redirect_to: str | None = None) -> str:
        return f"https://auth.test/authorize?provider={provider}"

    async def exchange_code_for_session(self, auth_code: str, code_verifier: str) -> dict[str, Any]:
        self._check()
        return {"access_token": auth_code, "user": self.users[auth_code]}

    async def update_user(
        self, access_token: str, *, data: dict[str, Any] | None = None, password: str | None = None
    ) -> dict[str, Any]:
        self._check()
        user = self.users[access_token]
        if data:
            user["user_metadata"] = {**user["user_metadata"], **data}
        return user

    async def sign_out(self, access_token: str) -> None:
        self._check()
        self.signed_out.append(access_token)

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        self._check()
        self.reset_requests.append(email)


@pytest.fixture
def engine():
    """Create an in-memory SQLite database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    # Import all models so they're registered
    import carmarket.models  # noqa: F401

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db(engine) -> Session:
    """Provide a database session for each test."""
    SessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
def seller() -> Principal:
    return Principal(
        id="seller-1",
        email="seller@example.com",
        full_name="Arta",
        role="seller",
        seller_phone="+38345123456",
    )


@pytest.fixture
def buyer() -> Principal:
    return Principal(id="buyer-1", email="buyer@example.com", full_name="Blend", role="buyer")


def make_listing(db: Session, minutes: int = 0, **overrides: Any) -> Listing:
    """Insert a listing created *minutes* after BASE_TIME."""
    values: dict[str, Any] = dict(
        brand="Volkswagen",
        model="Golf",
        year=2018,
        price=12_500,
        mileage=90_000,
        gearbox="Manual",
        fuel_type="Diesel",
        seller_id="seller-1",
        seller_username="Arta",
        seller_phone="+38345123456",
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
    values.update(overrides)
    listing = Listing(**values)
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


def make_image(db: Session, car_id: str, path: str, minutes: int = 0) -> ListingImage:
    image = ListingImage(car_id=car_id, path=path, created_at=BASE_TIME + timedelta(minutes=minutes))
    db.add(image)
    db.commit()
    return image
