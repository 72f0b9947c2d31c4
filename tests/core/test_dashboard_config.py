"""Tests for dashboard configuration loading and models."""

from pathlib import Path

import pytest

from ralph_dashboard.core.config import (
    CONFIG_FILENAME,
    _reset_config,
    get_config,
    load_config,
    load_project_config,
)
from ralph_dashboard.core.config.models import (
    DEFAULT_DOCUMENTS,
    DashboardConfig,
    DocumentsConfig,
    LoopCommandConfig,
)
from ralph_dashboard.core.exceptions import ConfigError


class TestDefaults:
    """Tests for default configuration values."""

    def test_loop_defaults(self):
        """Loop runs bash loop.sh with a 5 second grace period."""
        config = DashboardConfig()

        assert config.loop.command == ["bash", "loop.sh"]
        assert config.loop.scope_env_var == "WORK_SCOPE"
        assert config.loop.grace_period == 5.0

    def test_watch_and_git_defaults(self):
        """Watched files and git polling use the documented defaults."""
        config = DashboardConfig()

        assert config.watch.log_file == "ralph.log"
        assert config.watch.checklist_file == "IMPLEMENTATION_PLAN.md"
        assert config.watch.replay_backlog is True
        assert config.git.poll_interval == 10.0
        assert config.git.commit_limit == 10
        assert config.server.port == 3001

    def test_documents_default_allow_list(self):
        """Allow-list defaults to the known project documents."""
        assert DocumentsConfig().allowed == list(DEFAULT_DOCUMENTS)

    def test_models_are_frozen(self):
        """Config models cannot be mutated after load."""
        config = DashboardConfig()

        with pytest.raises(Exception):
            config.loop.grace_period = 1.0  # type: ignore[misc]


class TestValidation:
    """Tests for model validators."""

    def test_empty_command_rejected(self):
        """Loop command needs at least one element."""
        with pytest.raises(ValueError):
            LoopCommandConfig(command=[])

    def test_none_section_uses_defaults(self):
        """An empty YAML section parses as None and yields defaults."""
        config = DashboardConfig.model_validate({"loop": None, "documents": {"allowed": None}})

        assert config.loop.command == ["bash", "loop.sh"]
        assert config.documents.allowed == list(DEFAULT_DOCUMENTS)

    @pytest.mark.parametrize("name", ["/etc/passwd", "../secrets.md", "docs/../../x.md"])
    def test_escaping_document_rejected(self, name: str):
        """Allow-list entries must stay inside the project."""
        with pytest.raises(ValueError):
            DocumentsConfig(allowed=[name])

    def test_nested_document_allowed(self):
        """Relative nested names are accepted."""
        assert DocumentsConfig(allowed=["specs/overview.md"]).allowed == ["specs/overview.md"]


class TestLoadConfig:
    """Tests for the configuration singleton."""

    def test_load_from_dict(self):
        """load_config() installs the singleton."""
        config = load_config({"loop": {"grace_period": 2}})

        assert config.loop.grace_period == 2.0
        assert get_config() is config

    def test_get_config_loads_defaults(self):
        """get_config() without a prior load returns defaults."""
        assert get_config().server.host == "127.0.0.1"

    def test_reset_clears_singleton(self):
        """_reset_config() forces a fresh load."""
        first = load_config({"git": {"commit_limit": 3}})
        _reset_config()

        assert get_config() is not first
        assert get_config().git.commit_limit == 10

    def test_invalid_values_raise_config_error(self):
        """Schema violations surface as ConfigError."""
        with pytest.raises(ConfigError):
            load_config({"loop": {"grace_period": -1}})

    def test_load_from_yaml(self, tmp_path: Path):
        """YAML files are parsed with safe_load."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text("server:\n  port: 4000\nwatch:\n  log_file: out.log\n")

        config = load_config(path)

        assert config.server.port == 4000
        assert config.watch.log_file == "out.log"

    def test_empty_yaml_is_defaults(self, tmp_path: Path):
        """An empty file is a valid, default configuration."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text("")

        assert load_config(path) == DashboardConfig()

    def test_invalid_yaml_raises(self, tmp_path: Path):
        """Malformed YAML raises ConfigError."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text("server: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping_root_raises(self, tmp_path: Path):
        """The YAML root must be a mapping."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)


class TestLoadProjectConfig:
    """Tests for project-level configuration discovery."""

    def test_project_file_used(self, tmp_path: Path):
        """ralph-dashboard.yaml in the project root is picked up."""
        (tmp_path / CONFIG_FILENAME).write_text("git:\n  poll_interval: 30\n")

        assert load_project_config(tmp_path).git.poll_interval == 30.0

    def test_missing_project_file_uses_defaults(self, tmp_path: Path):
        """No config file means defaults."""
        assert load_project_config(tmp_path) == DashboardConfig()

    def test_explicit_missing_path_raises(self, tmp_path: Path):
        """An explicit config path must exist."""
        with pytest.raises(ConfigError, match="not found"):
            load_project_config(tmp_path, tmp_path / "nope.yaml")
