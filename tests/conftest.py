"""
Global pytest configuration and fixtures for Saheli testing.
"""
import tempfile
from pathlib import Path
from typing import Any, Dict

import pytest

from saheli.core.database import DatabaseManager
from saheli.services.backends.sqlite import SQLiteRecordStore, StaticSession
from saheli.services.sos import (
    AlertComposer,
    CallEscalator,
    ContactDirectory,
    LocationProvider,
    NotificationDispatcher,
    SOSOrchestrator
)
from tests.mocks.external_service_mocks import (  # noqa: F401
    MockDecisionPrompt,
    MockDialer,
    MockLocationCapability,
    MockRecordStore,
    MockSession,
    MockSMSGateway,
    mock_dialer,
    mock_location,
    mock_prompt,
    mock_session,
    mock_sms_gateway,
    mock_store
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir) -> Dict[str, Any]:
    """Provide test configuration."""
    return {
        "backend": {
            "provider": "sqlite",
            "local_user_id": "user-1"
        },
        "database": {
            "path": str(temp_dir / "saheli.db")
        },
        "sos": {
            "countdown_seconds": 1,
            "call_decision_timeout": 0.2,
            "send_timeout": 0.5,
            "max_send_retries": 2,
            "retry_backoff_base": 0.01,
            "location_timeout": 0.5,
            "call_decision": "skip"
        },
        "location": {
            "provider": "fixed",
            "latitude": 40.7128,
            "longitude": -74.006
        },
        "logging": {
            "level": "DEBUG",
            "file": None
        }
    }


@pytest.fixture
def test_database(temp_dir):
    """Create a migrated test SQLite database."""
    db = DatabaseManager(str(temp_dir / "test.db"))
    yield db
    db.close()


@pytest.fixture
def sqlite_store(test_database):
    return SQLiteRecordStore(test_database)


@pytest.fixture
def populated_store(mock_store):
    """Record store holding one user with three contacts."""
    mock_store.add_user("user-1", "Priya", [
        ("Asha", "+15550000001"),
        ("Meera", "+15550000002"),
        ("Ravi", "+15550000003")
    ])
    return mock_store


@pytest.fixture
def sos_components(mock_session, populated_store, mock_location,
                   mock_sms_gateway, mock_dialer, mock_prompt):
    """All collaborators of one orchestrator, exposed for assertions."""
    return {
        "session": mock_session,
        "store": populated_store,
        "location": mock_location,
        "gateway": mock_sms_gateway,
        "dialer": mock_dialer,
        "prompt": mock_prompt
    }


@pytest.fixture
def orchestrator(sos_components):
    """Orchestrator wired to mocks with short timeouts."""
    c = sos_components
    return SOSOrchestrator(
        directory=ContactDirectory(c["session"], c["store"]),
        location_provider=LocationProvider(c["location"], fix_timeout=0.5),
        composer=AlertComposer(),
        dispatcher=NotificationDispatcher(
            c["gateway"], send_timeout=0.5, max_retries=2, backoff_base=0.01
        ),
        escalator=CallEscalator(c["prompt"], c["dialer"], decision_timeout=0.2)
    )


@pytest.fixture
def local_session():
    return StaticSession("user-1")


# Test markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
