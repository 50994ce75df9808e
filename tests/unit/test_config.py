"""
Unit tests for configuration loading.
"""

from pathlib import Path

import pytest

from buildmap.config import BuildMapConfig, DEFAULT_PLATFORMS
from buildmap.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in (
        "BUILDMAP_DATA_DIR",
        "BUILDMAP_DB_BACKEND",
        "BUILDMAP_PLATFORMS",
        "BUILDMAP_MAX_WORKERS",
    ):
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "buildmap.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestDefaults:
    """Tests for the built-in defaults."""

    def test_default_values(self):
        config = BuildMapConfig()

        assert config.get_platforms() == DEFAULT_PLATFORMS
        assert config.get("state.backend") == "sqlite"
        assert config.get("state.db_path") == "data/chromium-data.sqlite"
        assert config.get("export.path") == "data/chromium-data.json"
        assert config.get("export.indent") == 2
        assert config.get("runner.max_workers") == 1
        assert config.get("remote.milestones_url") == "https://chromiumdash.appspot.com/fetch_milestones"

    def test_get_missing_key(self):
        config = BuildMapConfig()

        assert config.get("does.not.exist", "fallback") == "fallback"
        assert config.get("export.path.deeper", "fallback") == "fallback"


class TestYamlLoading:
    """Tests for YAML config files."""

    def test_file_overrides_defaults(self, tmp_path):
        path = write_config(tmp_path, """
platforms: [Linux_x64, Mac_Arm]
runner:
  max_workers: 4
export:
  path: out/map.json
""")

        config = BuildMapConfig(path)

        assert config.get_platforms() == ["Linux_x64", "Mac_Arm"]
        assert config.get("runner.max_workers") == 4
        assert config.get("runner.fail_fast") is False
        assert config.get("export.path") == "out/map.json"
        assert config.get("export.indent") == 2

    def test_empty_file_uses_defaults(self, tmp_path):
        config = BuildMapConfig(write_config(tmp_path, ""))

        assert config.get_platforms() == DEFAULT_PLATFORMS

    def test_duplicate_platforms_collapsed(self, tmp_path):
        config = BuildMapConfig(write_config(tmp_path, "platforms: [Linux, Mac, Linux]\n"))

        assert config.get_platforms() == ["Linux", "Mac"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            BuildMapConfig(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            BuildMapConfig(write_config(tmp_path, "platforms: [Linux\n"))

    def test_non_mapping_root(self, tmp_path):
        with pytest.raises(ConfigError):
            BuildMapConfig(write_config(tmp_path, "- Linux\n- Mac\n"))

    @pytest.mark.parametrize("content", [
        "platforms: []\n",
        "platforms: [Linux/x64]\n",
        "state:\n  backend: postgres\n",
        "runner:\n  max_workers: 0\n",
    ])
    def test_validation(self, tmp_path, content):
        with pytest.raises(ConfigError):
            BuildMapConfig(write_config(tmp_path, content))


class TestEnvironmentOverrides:
    """Tests for environment variable overrides."""

    def test_data_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BUILDMAP_DATA_DIR", str(tmp_path))

        config = BuildMapConfig()

        assert config.get("state.db_path") == str(tmp_path / "chromium-data.sqlite")
        assert config.get("export.path") == str(tmp_path / "chromium-data.json")

    def test_platforms(self, monkeypatch):
        monkeypatch.setenv("BUILDMAP_PLATFORMS", "Linux, Win_x64,,")

        assert BuildMapConfig().get_platforms() == ["Linux", "Win_x64"]

    def test_backend_and_workers(self, monkeypatch):
        monkeypatch.setenv("BUILDMAP_DB_BACKEND", "SQLSERVER")
        monkeypatch.setenv("BUILDMAP_MAX_WORKERS", "3")

        config = BuildMapConfig()

        assert config.get("state.backend") == "sqlserver"
        assert config.get("runner.max_workers") == 3

    def test_invalid_workers(self, monkeypatch):
        monkeypatch.setenv("BUILDMAP_MAX_WORKERS", "many")

        with pytest.raises(ConfigError):
            BuildMapConfig()
