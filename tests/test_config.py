"""
Tests for configuration loading and validation.
"""

import json
import logging

import pytest
import yaml

from netobjects import Config
from netobjects.util import (
    get_config_value,
    load_config_file,
    load_config_from_env,
    merge_configs,
    validate_config,
)


class TestConfig:
    """Test the orchestrator configuration"""

    def test_defaults_are_valid(self):
        config = Config()
        assert config.audit_enabled
        assert config.audit_max_entries == 1000
        assert not config.verify_evaluators
        assert config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("NETOBJECTS_AUDIT_ENABLED", "false")
        monkeypatch.setenv("NETOBJECTS_AUDIT_MAX_ENTRIES", "25")
        monkeypatch.setenv("NETOBJECTS_VERIFY_EVALUATORS", "yes")
        monkeypatch.setenv("NETOBJECTS_LOG_LEVEL", "debug")

        config = Config.from_env()

        assert config.audit_enabled is False
        assert config.audit_max_entries == 25
        assert config.verify_evaluators is True
        assert config.metrics_enabled is True
        assert config.log_level == "DEBUG"

    def test_from_env_ignores_bad_numbers(self, monkeypatch):
        monkeypatch.setenv("NETOBJECTS_AUDIT_MAX_ENTRIES", "plenty")
        assert Config.from_env().audit_max_entries == 1000

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "netobjects.yaml"
        path.write_text(yaml.safe_dump({"audit-max-entries": 50, "log_level": "WARNING"}))

        config = Config.from_file(str(path))

        assert config.audit_max_entries == 50
        assert config.log_level == "WARNING"
        assert config.audit_enabled is True

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "netobjects.json"
        path.write_text(json.dumps({"metrics_enabled": False}))

        assert Config.from_file(str(path)).metrics_enabled is False

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError) as exc_info:
            Config.from_dict({"audit_enabled": True, "colour": "blue"})
        assert "colour" in str(exc_info.value)

    def test_validate(self):
        with pytest.raises(ValueError):
            Config(audit_max_entries=0).validate()
        with pytest.raises(ValueError):
            Config(log_level="VERBOSE").validate()
        with pytest.raises(ValueError):
            Config(audit_enabled="yes").validate()

    def test_apply_logging(self):
        Config(log_level="ERROR").apply_logging()
        assert logging.getLogger("netobjects").level == logging.ERROR
        Config().apply_logging()
        assert logging.getLogger("netobjects").level == logging.INFO

    def test_to_dict_round_trip(self):
        config = Config(audit_max_entries=10, verify_evaluators=True)
        assert Config.from_dict(config.to_dict()) == config


class TestConfigUtilities:
    """Test the configuration helpers"""

    def test_load_config_from_env(self, monkeypatch):
        monkeypatch.setenv("NETOBJECTS_SOMETHING", "1")
        assert load_config_from_env()["something"] == "1"

    def test_get_config_value_casts(self, monkeypatch):
        monkeypatch.setenv("NETOBJECTS_PATHS", "user, post,")
        assert get_config_value("paths", cast_type=list) == ["user", "post"]
        assert get_config_value("missing", 3, int) == 3

    def test_merge_configs(self):
        assert merge_configs({"a": 1, "b": 1}, None, {"b": 2}) == {"a": 1, "b": 2}

    def test_load_config_file_errors(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(str(tmp_path / "absent.yaml"))

        ini = tmp_path / "config.ini"
        ini.write_text("[netobjects]")
        with pytest.raises(ValueError):
            load_config_file(str(ini))

        listing = tmp_path / "config.yaml"
        listing.write_text("- one\n- two\n")
        with pytest.raises(ValueError):
            load_config_file(str(listing))

        empty = tmp_path / "empty.yml"
        empty.write_text("")
        assert load_config_file(str(empty)) == {}

    def test_validate_config(self):
        schema = {
            "size": {"required": True, "type": int, "min": 1, "max": 10},
            "mode": {"choices": ["a", "b"]},
        }
        assert validate_config({"size": 5, "mode": "a"}, schema) == []
        assert len(validate_config({"mode": "c"}, schema)) == 2
        assert len(validate_config({"size": 11}, schema)) == 1
