"""Unit tests for todohub.engine.config — TodoHubConfig and loading."""

import pytest

import todohub.engine.config as cfg_mod
from todohub.engine.config import (
    RelayConfig,
    TodoHubConfig,
    get_config,
    load_config,
)
from todohub.engine.errors import ConfigError


class TestTodoHubConfig:
    """Test the TodoHubConfig Pydantic model."""

    def test_defaults(self):
        cfg = TodoHubConfig()
        assert cfg.environment == "dev"
        assert cfg.database.url == "sqlite:///todohub.db"
        assert cfg.relay.mode == "thread"
        assert cfg.realtime.room == "todos"
        assert cfg.reports.sheet_title == "TodoList Report"
        assert cfg.reports.max_column_width == 50
        assert cfg.server.port == 3000
        assert cfg.server.api_prefix == "/api"

    def test_valid_environments(self):
        for env in ("dev", "staging", "prod"):
            assert TodoHubConfig(environment=env).environment == env

    def test_invalid_environment(self):
        with pytest.raises(ValueError, match="dev/staging/prod"):
            TodoHubConfig(environment="test")

    def test_invalid_relay_mode(self):
        with pytest.raises(ValueError, match="thread/sync"):
            RelayConfig(mode="celery")


class TestLoadConfig:

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "todohub.yaml"))
        assert cfg == TodoHubConfig()

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "todohub.yaml"
        path.write_text(
            "environment: staging\n"
            "database:\n"
            "  url: sqlite:///tmp.db\n"
            "relay:\n"
            "  mode: sync\n"
            "reports:\n"
            "  max_column_width: 30\n"
        )
        cfg = load_config(str(path))
        assert cfg.environment == "staging"
        assert cfg.database.url == "sqlite:///tmp.db"
        assert cfg.relay.mode == "sync"
        assert cfg.reports.max_column_width == 30

    def test_nested_under_todohub_key(self, tmp_path):
        path = tmp_path / "todohub.yaml"
        path.write_text("todohub:\n  environment: prod\n")
        assert load_config(str(path)).environment == "prod"

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "todohub.yaml"
        path.write_text("environment: dev\n")
        monkeypatch.setenv("TODOHUB_DATABASE_URL", "sqlite:///override.db")
        monkeypatch.setenv("TODOHUB_ENV", "staging")
        cfg = load_config(str(path))
        assert cfg.database.url == "sqlite:///override.db"
        assert cfg.environment == "staging"

    def test_invalid_values_raise_config_error(self, tmp_path):
        path = tmp_path / "todohub.yaml"
        path.write_text("environment: nowhere\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(str(path))
        assert "Invalid configuration" in exc_info.value.message

    def test_invalid_yaml_raises_config_error(self, tmp_path):
        path = tmp_path / "todohub.yaml"
        path.write_text("database: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(str(path))

    def test_non_mapping_raises_config_error(self, tmp_path):
        path = tmp_path / "todohub.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="Expected a mapping"):
            load_config(str(path))

    def test_get_config_caches(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = get_config()
        assert get_config() is first
        assert cfg_mod._config is first
