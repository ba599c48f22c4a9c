"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from devup.models.report import Cache, Database, Framework, ProjectReport, Service
from devup.settings import get_settings
from devup.workflows.state import DevupState, Severity


@pytest.fixture(autouse=True)
def fresh_settings():
    """Clear cached settings so env patches in one test don't leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_project(tmp_path):
    """Factory writing files into a temporary project root.

    Dict values are dumped as JSON; strings are written verbatim.
    """

    def _make(files: dict[str, str | dict]) -> Path:
        for name, content in files.items():
            if isinstance(content, dict):
                content = json.dumps(content)
            (tmp_path / name).write_text(content)
        return tmp_path

    return _make


@pytest.fixture
def node_report() -> ProjectReport:
    """A Node.js project backed by Postgres and Redis."""
    return ProjectReport(
        framework=Framework.NODE,
        database=Database.POSTGRES,
        cache=Cache.REDIS,
        services=(Service.POSTGRES, Service.REDIS),
        port=3000,
        start_command="npm start",
        node_version="18",
        stacks=(Framework.NODE,),
    )


@pytest.fixture
def fastapi_report() -> ProjectReport:
    """A FastAPI project backed by MySQL."""
    return ProjectReport(
        framework=Framework.FASTAPI,
        database=Database.MYSQL,
        services=(Service.MYSQL,),
        port=8000,
        start_command="uvicorn main:app --host 0.0.0.0 --port 8000",
        stacks=(Framework.PYTHON,),
    )


@pytest.fixture
def java_report() -> ProjectReport:
    """A Java project with MongoDB."""
    return ProjectReport(
        framework=Framework.JAVA,
        database=Database.MONGODB,
        services=(Service.MONGODB,),
        port=8080,
        start_command="mvn spring-boot:run",
        stacks=(Framework.JAVA,),
    )


@pytest.fixture
def bare_report() -> ProjectReport:
    """A Node.js project with no infrastructure services."""
    return ProjectReport(
        framework=Framework.NODE,
        port=3000,
        start_command="node index.js",
        stacks=(Framework.NODE,),
    )


@pytest.fixture
def progress_messages() -> list[tuple[Severity, str]]:
    """Collector for progress callback messages."""
    return []


@pytest.fixture
def mock_progress(progress_messages):
    """Create a progress callback that collects messages."""

    def _progress(severity: Severity, message: str) -> None:
        progress_messages.append((severity, message))

    return _progress


@pytest.fixture
def workflow_state(tmp_path, mock_progress) -> DevupState:
    """Create a DevupState for testing."""
    return DevupState(path=tmp_path, on_progress=mock_progress)
