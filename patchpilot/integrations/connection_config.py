"""
Resolved runtime configuration for the debugging pipeline.

Every knob comes from the environment (``.env`` is loaded by the API entry
point). The resolved object is frozen; credentials live only in memory.
"""

import os
import tempfile
from dataclasses import dataclass

from patchpilot.utils.logger import get_logger

logger = get_logger("connection_config")

DEFAULT_LLM_MODEL = "claude-3-5-haiku-20241022"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable pipeline configuration resolved from environment variables."""
    # Reasoning provider
    anthropic_api_key: str = ""
    llm_model: str = DEFAULT_LLM_MODEL
    llm_max_tokens: int = 4096
    llm_timeout: float = 120.0

    # Search provider
    exa_api_key: str = ""
    search_timeout: float = 30.0

    # GitHub (issue fetch + pull requests)
    github_token: str = ""
    github_api_url: str = "https://api.github.com"

    # Workspace and subprocesses
    workspace_root: str = os.path.join(tempfile.gettempdir(), "patchpilot")
    install_dependencies: bool = True
    install_timeout: float = 300.0
    verify_timeout: float = 900.0

    # Step-reporting sink
    sink_timeout: float = 10.0
    backend_base_url: str = "http://localhost:3000"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r", name, raw, extra={"action": "config_invalid"})
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r", name, raw, extra={"action": "config_invalid"})
        return default
    return value


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def resolve_config() -> PipelineConfig:
    """Build a PipelineConfig from the current environment."""
    defaults = PipelineConfig()
    return PipelineConfig(
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
        llm_model=os.getenv("PATCHPILOT_LLM_MODEL") or defaults.llm_model,
        llm_max_tokens=int(_float_env("PATCHPILOT_LLM_MAX_TOKENS", defaults.llm_max_tokens)),
        llm_timeout=_float_env("PATCHPILOT_LLM_TIMEOUT", defaults.llm_timeout),
        exa_api_key=os.getenv("EXA_API_KEY", ""),
        search_timeout=_float_env("PATCHPILOT_SEARCH_TIMEOUT", defaults.search_timeout),
        github_token=os.getenv("GITHUB_TOKEN", ""),
        github_api_url=os.getenv("GITHUB_API_URL") or defaults.github_api_url,
        workspace_root=os.getenv("PATCHPILOT_WORKSPACE_ROOT") or defaults.workspace_root,
        install_dependencies=_bool_env("PATCHPILOT_INSTALL_DEPS", defaults.install_dependencies),
        install_timeout=_float_env("PATCHPILOT_INSTALL_TIMEOUT", defaults.install_timeout),
        verify_timeout=_float_env("PATCHPILOT_VERIFY_TIMEOUT", defaults.verify_timeout),
        sink_timeout=_float_env("PATCHPILOT_SINK_TIMEOUT", defaults.sink_timeout),
        backend_base_url=os.getenv("BACKEND_BASE_URL") or defaults.backend_base_url,
    )
