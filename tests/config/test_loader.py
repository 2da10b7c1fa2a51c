"""Tests for configuration loading and precedence."""

from __future__ import annotations

from pathlib import Path

import pytest

from docplane.config import load_config, resolve_db_path
from docplane.core.errors import ConfigError, ErrorCode


def _write_config(root: Path, text: str) -> None:
    config_dir = root / ".docplane"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.yaml").write_text(text)


class TestDefaults:
    """Built-in defaults."""

    def test_given_no_sources_when_load_then_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)

        assert config.logging.level == "INFO"
        assert config.index.extensions == [".md", ".mdc"]
        assert config.index.max_workers == 4
        assert config.database.path == ".docplane/index.db"
        assert config.search.default_limit == 20
        assert config.search.weights.as_dict() == {
            "fulltext": 1.0,
            "metadata": 0.8,
            "semantic": 0.6,
        }
        assert config.graph.default_max_depth == 3


class TestPrecedence:
    """defaults < yaml < env < kwargs."""

    def test_yaml_overrides_defaults(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "search:\n  default_limit: 7\ngraph:\n  default_max_depth: 5\n")

        config = load_config(tmp_path)

        assert config.search.default_limit == 7
        assert config.graph.default_max_depth == 5

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_config(tmp_path, "search:\n  default_limit: 7\n")
        monkeypatch.setenv("DOCPLANE__SEARCH__DEFAULT_LIMIT", "50")

        config = load_config(tmp_path)

        assert config.search.default_limit == 50

    def test_kwargs_override_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOCPLANE__LOGGING__LEVEL", "ERROR")

        config = load_config(tmp_path, logging={"level": "DEBUG"})

        assert config.logging.level == "DEBUG"

    def test_extensions_normalized(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "index:\n  extensions: [MD, .TXT]\n")

        config = load_config(tmp_path)

        assert config.index.extensions == [".md", ".txt"]


class TestErrors:
    """Invalid configuration surfaces as ConfigError."""

    def test_invalid_yaml_raises_parse_error(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "search: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)

        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_non_mapping_yaml_raises_parse_error(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "- just\n- a list\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)

        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_invalid_value_names_field(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "index:\n  max_workers: 0\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_VALUE
        assert exc_info.value.details["field"].startswith("index")


class TestResolveDbPath:
    """Database path resolution."""

    def test_relative_path_resolves_against_root(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert resolve_db_path(tmp_path, config) == tmp_path / ".docplane" / "index.db"

    def test_absolute_path_kept(self, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere" / "db.sqlite"
        config = load_config(tmp_path, database={"path": str(target)})
        assert resolve_db_path(tmp_path / "root", config) == target
