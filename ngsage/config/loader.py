import collections.abc
import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import structlog
import yaml
from pydantic import ValidationError

from ngsage.errors import ConfigError
from .analysis import AnalysisConfig
from .defaults import DEFAULT_CONFIG, ENV_PREFIX

logger = structlog.get_logger()

PROJECT_CONFIG_NAME = ".ngsage.yaml"
ENV_KEYS = ("severity_min", "format", "max_workers")


def deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Recursively merges two dictionaries.
    'override' values take precedence over 'base' values.
    Lists are overridden, not merged.
    """
    result = base.copy()
    for key, value in override.items():
        if (
            isinstance(value, collections.abc.Mapping)
            and key in result
            and isinstance(result[key], collections.abc.Mapping)
        ):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def global_config_path() -> Path:
    return Path.home() / ".ngsage" / "config.yaml"


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping.")
    return data


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    overrides = {}
    for key in ENV_KEYS:
        value = environ.get(ENV_PREFIX + key.upper())
        if value:
            overrides[key] = value
    return overrides


def load_config(
    project_path: str = ".",
    config_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AnalysisConfig:
    """
    Loads and merges configurations from default, global, and project-specific files,
    then applies NGSAGE_* environment overrides.

    `config_file` replaces the project's .ngsage.yaml when given.
    """
    # 1. Start with the default config
    config = copy.deepcopy(DEFAULT_CONFIG)

    # 2. Load and merge global config; a broken global file is skipped
    global_path = global_config_path()
    if global_path.is_file():
        try:
            config = deep_merge(config, _read_yaml(global_path))
        except (yaml.YAMLError, ConfigError) as e:
            logger.warning("Ignoring unreadable global config", path=str(global_path), error=str(e))

    # 3. Load and merge project-specific config
    if config_file is not None:
        project_config_path = Path(config_file)
        if not project_config_path.is_file():
            raise ConfigError(f"Config file not found: {project_config_path}")
    else:
        project_config_path = Path(project_path) / PROJECT_CONFIG_NAME
    if project_config_path.is_file():
        try:
            config = deep_merge(config, _read_yaml(project_config_path))
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing project config file at {project_config_path}: {e}") from e
        logger.debug("Project config loaded", path=str(project_config_path))

    # 4. Environment
    config = deep_merge(config, env_overrides(environ))

    # 5. Validate final config
    try:
        return AnalysisConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def apply_overrides(config: AnalysisConfig, **overrides) -> AnalysisConfig:
    """Applies command-line values over a loaded config. None means 'not given'."""
    given = {k: v for k, v in overrides.items() if v is not None}
    if not given:
        return config
    data = config.model_dump()
    try:
        return AnalysisConfig.model_validate(deep_merge(data, given))
    except ValidationError as e:
        raise ConfigError(f"Invalid option: {e}") from e
