"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (DOCPLANE__SECTION__KEY)
3. Repo config (.docplane/config.yaml under the indexed root)
4. Built-in defaults (lowest priority)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from docplane.config.models import (
    DatabaseConfig,
    DocPlaneConfig,
    GraphConfig,
    IndexConfig,
    LoggingConfig,
    SearchConfig,
)
from docplane.core.errors import ConfigError

CONFIG_DIR_NAME = ".docplane"
CONFIG_FILE_NAME = "config.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top-level value must be a mapping")
    return data


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class DocPlaneSettings(BaseSettings):
        """Root config. Env vars: DOCPLANE__LOGGING__LEVEL, DOCPLANE__SEARCH__DEFAULT_LIMIT, etc."""

        model_config = SettingsConfigDict(
            env_prefix="DOCPLANE__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        index: IndexConfig = IndexConfig()
        database: DatabaseConfig = DatabaseConfig()
        search: SearchConfig = SearchConfig()
        graph: GraphConfig = GraphConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return DocPlaneSettings


def load_config(root: Path | None = None, **kwargs: Any) -> DocPlaneConfig:
    """Load config: defaults < repo yaml < env vars < kwargs.

    Args:
        root: Indexed root directory. Defaults to current working directory.
        **kwargs: Override values (highest precedence).

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    root = root or Path.cwd()
    yaml_config = _load_yaml(root / CONFIG_DIR_NAME / CONFIG_FILE_NAME)

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return DocPlaneConfig.model_validate(settings.model_dump())


def resolve_db_path(root: Path, config: DocPlaneConfig) -> Path:
    """Resolve the configured database path against the indexed root."""
    path = Path(config.database.path).expanduser()
    return path if path.is_absolute() else root / path
