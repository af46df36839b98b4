"""
Test Configuration and Fixtures

Shared fixtures for unit tests (fake entries) and integration tests
(SQLAlchemy on in-memory SQLite).
"""

import os

import pytest

os.environ.setdefault("AUTOHISTORY_LOG_LEVEL", "WARNING")

from autohistory.logging import configure_logging  # noqa: E402

configure_logging()


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """
    Auto-assign tier markers so we can run:
    - pytest -m unit
    - pytest -m integration

    Convention:
    - tests/integration/** => integration
    - everything else      => unit
    """
    for item in items:
        path = str(getattr(item, "fspath", ""))
        # If the test is already explicitly tiered, do not override.
        if item.get_closest_marker("integration") or item.get_closest_marker("unit"):
            continue
        if "/tests/integration/" in path or "\\tests\\integration\\" in path:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def fake_clock():
    """Deterministic clock for `date_time_factory`."""
    from tests.support.clock import FakeClock

    return FakeClock()


# =============================================================================
# INTEGRATION FIXTURES
# =============================================================================


@pytest.fixture
def engine():
    """In-memory SQLite with every test table created."""
    from sqlalchemy import create_engine
    from sqlalchemy.pool import StaticPool

    from autohistory.db.models import Base
    import tests.support.models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    from sqlalchemy.orm import Session

    with Session(engine) as session:
        yield session


@pytest.fixture
def builder(fake_clock):
    from autohistory.builder import AutoHistoryBuilder
    from autohistory.config import AutoHistoryOptions
    from tests.support.models import Blog, NotTracked2

    options = (
        AutoHistoryOptions(application_name="autohistory-tests")
        .with_date_time_factory(fake_clock.now)
        .configure_type(Blog, lambda t: t.with_exclude_property(Blog.excluded_property))
        .configure_type(NotTracked2, lambda t: t.with_exclude_from_history())
    )
    return AutoHistoryBuilder(options)


@pytest.fixture
def history():
    """Return the `AutoHistory` rows of a session in insertion order."""
    from sqlalchemy import select

    from autohistory.db.models import AutoHistory

    def _history(session, **filters):
        stmt = select(AutoHistory).filter_by(**filters).order_by(AutoHistory.id)
        return session.scalars(stmt).all()

    return _history
