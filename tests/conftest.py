import pytest

from patchpilot.api.session_manager import active_runs
from patchpilot.integrations.connection_config import PipelineConfig
from patchpilot.integrations.session_sink import InMemorySessionSink
from tests.helpers import CALC_SOURCE, UTILS_SOURCE, make_repo


@pytest.fixture
def source_repo(tmp_path):
    """A small upstream repository with a bug in app/calc.py."""
    return make_repo(tmp_path / "upstream", {
        "app/calc.py": CALC_SOURCE,
        "app/utils.py": UTILS_SOURCE,
        "README.md": "# calc\n",
    })


@pytest.fixture
def repo_url(source_repo):
    return f"file://{source_repo}"


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(
        anthropic_api_key="test-key",
        exa_api_key="",
        workspace_root=str(tmp_path / "workspaces"),
        install_dependencies=False,
        verify_timeout=60,
        llm_timeout=10,
    )


@pytest.fixture
def sink():
    return InMemorySessionSink()


@pytest.fixture(autouse=True)
def _clear_active_runs():
    active_runs.clear()
    yield
    active_runs.clear()
