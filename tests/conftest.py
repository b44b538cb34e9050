import pytest
import sys
import tempfile
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from collab_api.services.database import DatabaseService
from collab_api.services.mutations import PlaylistService

# Hypothesis configuration for property-based testing
from hypothesis import settings
from tests.helpers.fakes import TEST_TRACKS

# Register Hypothesis profiles
settings.register_profile("fast", max_examples=50, deadline=None)
settings.register_profile("thorough", max_examples=1000, deadline=None)
settings.load_profile("fast")  # Default to fast profile


def pytest_collection_modifyitems(items):
    """Automatically order tests: unit tests first, then property tests.

    Individual tests marked with @pytest.mark.order("last") will run at the very end.
    """
    for item in items:
        # Skip if item already has explicit order marker
        if hasattr(item, 'get_closest_marker') and item.get_closest_marker('order'):
            continue

        # Assign order based on test file name
        test_file = str(item.fspath)
        if 'test_unit_' in test_file:
            item.add_marker(pytest.mark.order(1))
        elif 'test_props_' in test_file:
            item.add_marker(pytest.mark.order(2))


@pytest.fixture
def db_path():
    """Temporary SQLite file removed after the test."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = Path(f.name)
    yield path
    path.unlink(missing_ok=True)


@pytest.fixture
def db(db_path):
    """Database with the small test catalog and an empty playlist."""
    database = DatabaseService(db_path)
    database.add_tracks(TEST_TRACKS)
    return database


@pytest.fixture
def service(db):
    """PlaylistService with predictable item ids."""
    counter = iter(range(1, 10_000))
    return PlaylistService(db, id_factory=lambda: f"item-{next(counter)}")


@pytest.fixture
def api_client(db_path):
    """FastAPI TestClient over a fresh app with the test catalog loaded."""
    from collab_api.main import create_app
    from fastapi.testclient import TestClient

    DatabaseService(db_path).add_tracks(TEST_TRACKS)
    app = create_app(db_path=db_path, heartbeat_seconds=0.05, seed=False)
    with TestClient(app) as client:
        yield client
