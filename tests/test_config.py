from patchpilot.integrations.connection_config import DEFAULT_LLM_MODEL, resolve_config


def test_defaults(monkeypatch):
    for name in ("ANTHROPIC_API_KEY", "PATCHPILOT_LLM_MODEL", "PATCHPILOT_VERIFY_TIMEOUT",
                 "PATCHPILOT_INSTALL_DEPS", "BACKEND_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    config = resolve_config()
    assert config.anthropic_api_key == ""
    assert config.llm_model == DEFAULT_LLM_MODEL
    assert config.verify_timeout == 900.0
    assert config.install_dependencies is True
    assert config.backend_base_url == "http://localhost:3000"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setenv("PATCHPILOT_LLM_MODEL", "claude-custom")
    monkeypatch.setenv("PATCHPILOT_VERIFY_TIMEOUT", "30")
    monkeypatch.setenv("PATCHPILOT_INSTALL_DEPS", "false")
    monkeypatch.setenv("PATCHPILOT_WORKSPACE_ROOT", str(tmp_path))
    config = resolve_config()
    assert config.anthropic_api_key == "sk-test"
    assert config.llm_model == "claude-custom"
    assert config.verify_timeout == 30.0
    assert config.install_dependencies is False
    assert config.workspace_root == str(tmp_path)


def test_malformed_numbers_fall_back(monkeypatch):
    monkeypatch.setenv("PATCHPILOT_VERIFY_TIMEOUT", "soon")
    monkeypatch.setenv("PATCHPILOT_LLM_TIMEOUT", "-5")
    config = resolve_config()
    assert config.verify_timeout == 900.0
    assert config.llm_timeout == 120.0
