"""Tests for somnus.core.config."""

import json
import os

import pytest
import yaml

from somnus.core.config import Config
from somnus.core.exceptions import ConfigurationError


class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.get("coalescer.merge_threshold_ms") == 60_000
        assert config.get("geometry.max_ticks") == 12
        assert config.get("scoring.weights.duration") == 0.27

    def test_custom_env_prefix(self, monkeypatch):
        monkeypatch.setenv("MYAPP_GEOMETRY__MAX_TICKS", "8")
        config = Config(env_prefix="MYAPP_")
        assert config.get("geometry.max_ticks") == "8"

    def test_yaml_config_file(self, tmp_config_file):
        config = Config(config_file=tmp_config_file)
        assert config.get("coalescer.merge_threshold_ms") == 30_000
        # Untouched keys keep their defaults
        assert config.get("coalescer.min_stable_ms") == 10_000

    def test_json_config_file(self, tmp_dir):
        path = os.path.join(tmp_dir, "config.json")
        with open(path, "w") as f:
            json.dump({"distributor": {"cycle_minutes": 100}}, f)
        config = Config(config_file=path)
        assert config.get("distributor.cycle_minutes") == 100

    def test_env_overrides_file(self, tmp_config_file, monkeypatch):
        monkeypatch.setenv("SOMNUS_COALESCER__MERGE_THRESHOLD_MS", "45000")
        config = Config(config_file=tmp_config_file)
        assert config.get("coalescer.merge_threshold_ms") == "45000"

    def test_missing_file(self, tmp_dir):
        with pytest.raises(ConfigurationError, match="not found"):
            Config(config_file=os.path.join(tmp_dir, "nope.yaml"))

    def test_unsupported_extension(self, tmp_dir):
        path = os.path.join(tmp_dir, "config.toml")
        with open(path, "w") as f:
            f.write("[coalescer]\n")
        with pytest.raises(ConfigurationError, match="Unsupported"):
            Config(config_file=path)

    def test_non_mapping_file(self, tmp_dir):
        path = os.path.join(tmp_dir, "config.yaml")
        with open(path, "w") as f:
            yaml.dump([1, 2, 3], f)
        with pytest.raises(ConfigurationError, match="mapping"):
            Config(config_file=path)

    def test_get_missing_key(self):
        config = Config()
        assert config.get("nonexistent.key") is None
        assert config.get("nonexistent.key", "fallback") == "fallback"

    def test_set(self):
        config = Config()
        config.set("custom.nested.value", 42)
        assert config.get("custom.nested.value") == 42

    def test_extra_defaults(self):
        config = Config(defaults={"custom": {"key": "value"}})
        assert config.get("custom.key") == "value"
