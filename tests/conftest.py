"""
Pytest configuration and fixtures for Warden tests.

This module provides shared fixtures used across unit and integration
tests: a temporary SQLite database, the demo data, fixed clocks and
per-user request contexts.
"""

import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Generator

import pytest

from warden.context import RequestContext
from warden.schema import Document, Project, ResourceType
from warden.seed import seed
from warden.store import Predicate, WardenDB

# 2026-10-20 is a Tuesday, 2026-10-24 a Saturday
TUESDAY = datetime(2026, 10, 20, 12, 0, tzinfo=UTC)
SATURDAY = datetime(2026, 10, 24, 12, 0, tzinfo=UTC)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db(temp_dir: Path) -> Generator[WardenDB, None, None]:
    """Create an empty database."""
    database = WardenDB(temp_dir / "warden.db")
    yield database
    database.close()


@pytest.fixture
def seeded_db(db: WardenDB) -> WardenDB:
    """Database loaded with the demo users, projects and documents."""
    seed(db)
    return db


@pytest.fixture
def tuesday_clock() -> Callable[[], datetime]:
    """Clock fixed on a weekday."""
    return lambda: TUESDAY


@pytest.fixture
def saturday_clock() -> Callable[[], datetime]:
    """Clock fixed on a weekend day."""
    return lambda: SATURDAY


@pytest.fixture
def context_for(seeded_db: WardenDB, tuesday_clock) -> Callable[..., RequestContext]:
    """
    Factory for request contexts of seeded users.

    Usage:
        ctx = context_for("author.eng@example.com")
        ctx = context_for("author.eng@example.com", clock=saturday_clock)
    """

    def make(email: str, clock=None, settings=None) -> RequestContext:
        user = seeded_db.get_user_by_email(email)
        assert user is not None, f"no seeded user {email}"
        return RequestContext(
            user.to_principal(),
            seeded_db,
            clock=clock or tuesday_clock,
            settings=settings,
        )

    return make


@pytest.fixture
def document_named(seeded_db: WardenDB) -> Callable[[str], Document]:
    """Look up a seeded document by title."""

    def lookup(title: str) -> Document:
        (document,) = seeded_db.find(ResourceType.DOCUMENT, Predicate.equals("title", title))
        return document

    return lookup


@pytest.fixture
def project_named(seeded_db: WardenDB) -> Callable[[str], Project]:
    """Look up a seeded project by name."""

    def lookup(name: str) -> Project:
        (project,) = seeded_db.find(ResourceType.PROJECT, Predicate.equals("name", name))
        return project

    return lookup
