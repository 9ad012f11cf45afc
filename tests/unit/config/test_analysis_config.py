import pytest
from pathlib import Path
import yaml
from unittest.mock import patch

from ngsage.config.analysis import AnalysisConfig
from ngsage.config.defaults import DEFAULT_EXCLUDES
from ngsage.config.loader import apply_overrides, deep_merge, env_overrides, load_config
from ngsage.errors import ConfigError


@pytest.fixture
def mock_home_dir(tmp_path: Path):
    """Mocks the home directory to isolate global config tests."""
    home_dir = tmp_path / "home" / "user"
    home_dir.mkdir(parents=True)
    return home_dir


@pytest.fixture
def project_dir(tmp_path: Path):
    """Creates a temporary Angular project directory."""
    proj_dir = tmp_path / "my_app"
    proj_dir.mkdir()
    return proj_dir


def write_global(home: Path, content):
    config_dir = home / ".ngsage"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text(content if isinstance(content, str) else yaml.dump(content))


def test_load_default_config(project_dir, mock_home_dir):
    with patch("pathlib.Path.home", return_value=mock_home_dir):
        config = load_config(str(project_dir), environ={})
    assert config.severity_min == "info"
    assert config.format == "text"
    assert config.exclude == DEFAULT_EXCLUDES
    assert config.fail_threshold == "info"


def test_project_overrides_global(project_dir, mock_home_dir):
    write_global(mock_home_dir, {"severity_min": "warning", "max_workers": 2, "rule_options": {"nested-ngif": {"max_depth": 4}}})
    (project_dir / ".ngsage.yaml").write_text(yaml.dump({
        "severity_min": "error",
        "rule_options": {"nested-subscription-hell": {"max_depth": 2}},
    }))

    with patch("pathlib.Path.home", return_value=mock_home_dir):
        config = load_config(str(project_dir), environ={})

    assert config.severity_min == "error"  # Project overrides global
    assert config.max_workers == 2  # Global overrides default
    assert config.rule_options == {
        "nested-ngif": {"max_depth": 4},
        "nested-subscription-hell": {"max_depth": 2},
    }


def test_environment_overrides_files(project_dir, mock_home_dir):
    (project_dir / ".ngsage.yaml").write_text("format: json\n")
    with patch("pathlib.Path.home", return_value=mock_home_dir):
        config = load_config(str(project_dir), environ={"NGSAGE_FORMAT": "sarif", "NGSAGE_MAX_WORKERS": "8"})
    assert config.format == "sarif"
    assert config.max_workers == 8


def test_env_overrides_ignores_unrelated_variables():
    assert env_overrides({"NGSAGE_SEVERITY_MIN": "warning", "NGSAGE_OTHER": "x", "HOME": "/root"}) == {
        "severity_min": "warning"
    }


def test_broken_global_config_is_skipped(project_dir, mock_home_dir):
    write_global(mock_home_dir, "severity_min: [unclosed\n")
    with patch("pathlib.Path.home", return_value=mock_home_dir):
        config = load_config(str(project_dir), environ={})
    assert config.severity_min == "info"


def test_broken_project_config_is_an_error(project_dir, mock_home_dir):
    (project_dir / ".ngsage.yaml").write_text("severity_min: [unclosed\n")
    with patch("pathlib.Path.home", return_value=mock_home_dir):
        with pytest.raises(ConfigError, match="Error parsing project config"):
            load_config(str(project_dir), environ={})


def test_invalid_values_are_rejected(project_dir, mock_home_dir):
    (project_dir / ".ngsage.yaml").write_text(yaml.dump({"severity_min": "critical"}))
    with patch("pathlib.Path.home", return_value=mock_home_dir):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(str(project_dir), environ={})


def test_unknown_keys_are_rejected(project_dir, mock_home_dir):
    (project_dir / ".ngsage.yaml").write_text(yaml.dump({"thresholds": {"complexity": 10}}))
    with patch("pathlib.Path.home", return_value=mock_home_dir):
        with pytest.raises(ConfigError):
            load_config(str(project_dir), environ={})


def test_explicit_config_file(tmp_path, project_dir, mock_home_dir):
    custom = tmp_path / "ci.yaml"
    custom.write_text(yaml.dump({"fail_on": "error", "rules": "missing-trackby, nested-ngif"}))
    (project_dir / ".ngsage.yaml").write_text(yaml.dump({"format": "json"}))

    with patch("pathlib.Path.home", return_value=mock_home_dir):
        config = load_config(str(project_dir), config_file=str(custom), environ={})
        assert config.format == "text"
        assert config.rules == ["missing-trackby", "nested-ngif"]
        assert config.fail_threshold == "error"

        with pytest.raises(ConfigError, match="not found"):
            load_config(str(project_dir), config_file=str(tmp_path / "absent.yaml"), environ={})


def test_apply_overrides():
    config = AnalysisConfig.default()
    assert apply_overrides(config, format=None) is config

    updated = apply_overrides(config, format="json", severity_min="warning", max_workers=None)
    assert updated.format == "json"
    assert updated.severity_min == "warning"
    assert updated.max_workers == 4
    assert config.format == "text"

    with pytest.raises(ConfigError):
        apply_overrides(config, max_workers=0)


def test_deep_merge():
    base = {"a": 1, "b": {"c": 2, "d": 3}, "e": [1]}
    override = {"b": {"c": 4, "f": 5}, "e": [2]}
    assert deep_merge(base, override) == {"a": 1, "b": {"c": 4, "d": 3, "f": 5}, "e": [2]}
