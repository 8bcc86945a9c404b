import pytest
import shutil
import tempfile
from pathlib import Path

from attnflow.config import AnalysisConfig, _clear_config_cache
from attnflow.models import VisitEvent

# 2024-01-01T00:00:00Z
BASE_TS = 1_704_067_200_000
MINUTE_MS = 60_000


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    temp_dir = tempfile.mkdtemp()
    db_path = Path(temp_dir) / "test_db.sqlite"
    yield db_path
    shutil.rmtree(temp_dir)


@pytest.fixture
def visit():
    """Factory for VisitEvents placed ``minutes`` after a fixed base time."""

    def _visit(url: str, minutes: float = 0.0, title: str = "") -> VisitEvent:
        return VisitEvent.from_url(url, timestamp=BASE_TS + int(minutes * MINUTE_MS), title=title)

    return _visit


@pytest.fixture
def record():
    """Factory for raw history records as a browser export provides them."""

    def _record(url: str, minutes: float = 0.0, title: str | None = None) -> dict:
        raw = {"url": url, "lastVisitTime": BASE_TS + int(minutes * MINUTE_MS)}
        if title is not None:
            raw["title"] = title
        return raw

    return _record


@pytest.fixture
def config():
    """Default analysis configuration."""
    return AnalysisConfig()


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Make sure no test sees another test's cached global config."""
    _clear_config_cache()
    yield
    _clear_config_cache()
