"""Pytest fixtures for InkMind tests."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from db import Base
from domain import Actor, Role
from fakes import FakeBlobStorage, FakeImageGenerator, InMemoryDesignRepository
from repository import SQLDesignRepository


@pytest.fixture
def repo() -> InMemoryDesignRepository:
    return InMemoryDesignRepository()


@pytest.fixture
def storage() -> FakeBlobStorage:
    return FakeBlobStorage()


@pytest.fixture
def generator() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def owner() -> Actor:
    return Actor(id=uuid.uuid4())


@pytest.fixture
def stranger() -> Actor:
    return Actor(id=uuid.uuid4())


@pytest.fixture
def admin() -> Actor:
    return Actor(id=uuid.uuid4(), role=Role.ADMIN)


@pytest.fixture
async def session_maker():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def sql_repo(session_maker):
    async with session_maker() as session:
        yield SQLDesignRepository(session)
