"""
Tests for option resolution and environment settings.
"""

import re
from datetime import timedelta

import pytest
from pydantic import ValidationError

from promise_police.config.settings import (
    DEFAULT_IGNORE_LIST,
    Settings,
    SupervisionConfig,
    load_options_file,
    resolve_config,
    settings,
)
from promise_police.system.promise import Promise
from promise_police.system.supervisor import FutureSupervisor, is_supervised


class TestResolveConfig:
    """Caller options replace documented defaults field by field."""

    def test_absent_options_yield_defaults(self):
        config = resolve_config()

        assert config == SupervisionConfig()
        assert config.timeout == 2.0
        assert config.ignore_list == DEFAULT_IGNORE_LIST
        assert config.check_chains is True
        assert config.two_functions_complete_chain is True
        assert config.throw_error is False

    def test_partial_overrides_keep_other_defaults(self):
        config = resolve_config({"timeout": 0.5}, throw_error=True)

        assert config.timeout == 0.5
        assert config.throw_error is True
        assert config.check_chains is True

    def test_custom_ignore_list_replaces_defaults(self):
        config = resolve_config(ignore_list=[r"at Pool\.warm_up"])

        assert len(config.ignore_list) == 1
        assert config.ignore_list[0].pattern == r"at Pool\.warm_up"
        assert not set(DEFAULT_IGNORE_LIST) & set(config.ignore_list)

    def test_camel_case_keys_are_accepted(self):
        config = resolve_config({
            "ignoreList": [],
            "checkChains": False,
            "twoFunctionsCompleteChain": False,
            "throwError": True,
        })

        assert config.ignore_list == ()
        assert config.check_chains is False
        assert config.two_functions_complete_chain is False
        assert config.throw_error is True

    def test_timedelta_timeout_becomes_seconds(self):
        assert resolve_config(timeout=timedelta(milliseconds=250)).timeout == 0.25

    def test_compiled_patterns_are_kept(self):
        pattern = re.compile("fire_and_forget")

        assert resolve_config(ignore_list=[pattern]).ignore_list == (pattern,)

    def test_malformed_ignore_entries_are_dropped(self, log_messages):
        config = resolve_config(ignore_list=["valid", 42, "(unclosed"])

        assert [p.pattern for p in config.ignore_list] == ["valid"]
        dropped = [r for r in log_messages if "Dropping ignore_list entry" in r["message"]]
        assert len(dropped) == 2

    @pytest.mark.asyncio
    async def test_bytes_patterns_are_dropped(self, log_messages):
        config = resolve_config(ignore_list=[re.compile(b"vendor"), "vendor"])

        assert [p.pattern for p in config.ignore_list] == ["vendor"]
        assert any("bytes pattern" in r["message"] for r in log_messages)
        # Supervising must still work with what is left
        assert is_supervised(FutureSupervisor(config).supervise(Promise()))

    @pytest.mark.parametrize("value", [42, True, {"vendor": 1}, b"vendor"])
    def test_non_list_ignore_list_is_dropped(self, value, log_messages):
        config = resolve_config(ignore_list=value)

        assert config.ignore_list == ()
        assert any("not a list of patterns" in r["message"] for r in log_messages)

    @pytest.mark.parametrize("value", [None, "soon", True, -1, float("nan")])
    def test_invalid_timeout_falls_back_to_default(self, value, log_messages):
        config = resolve_config(timeout=value)

        assert config.timeout == 2.0
        assert any("Invalid timeout" in r["message"] for r in log_messages)

    def test_numeric_string_timeout_is_accepted(self):
        assert resolve_config(timeout="0.5").timeout == 0.5

    def test_unknown_keys_are_ignored(self, log_messages):
        config = resolve_config({"timout": 5})

        assert config.timeout == 2.0
        assert any("'timout'" in r["message"] for r in log_messages)

    def test_resolved_config_passes_through(self):
        config = resolve_config(timeout=1)

        assert resolve_config(config) is config
        assert resolve_config(config, check_chains=False).timeout == 1

    def test_config_is_immutable(self):
        config = resolve_config()

        with pytest.raises(ValidationError):
            config.timeout = 10


class TestOptionsFile:
    """An OPTIONS_FILE yaml sits between defaults and caller options."""

    def test_file_overrides_defaults(self, tmp_path, monkeypatch):
        options = tmp_path / "supervision.yaml"
        options.write_text("timeout: 0.75\nthrowError: true\nignoreList:\n  - vendor_sdk\n")
        monkeypatch.setattr(settings, "OPTIONS_FILE", str(options))

        config = resolve_config()

        assert config.timeout == 0.75
        assert config.throw_error is True
        assert [p.pattern for p in config.ignore_list] == ["vendor_sdk"]

    def test_caller_options_beat_file(self, tmp_path, monkeypatch):
        options = tmp_path / "supervision.yaml"
        options.write_text("timeout: 0.75\n")
        monkeypatch.setattr(settings, "OPTIONS_FILE", str(options))

        assert resolve_config(timeout=3).timeout == 3

    def test_missing_file_gives_nothing(self, tmp_path):
        assert load_options_file(str(tmp_path / "absent.yaml")) == {}
        assert load_options_file(None) == {}

    def test_non_mapping_file_is_ignored(self, tmp_path, log_messages):
        options = tmp_path / "supervision.yaml"
        options.write_text("- just\n- a list\n")

        assert load_options_file(str(options)) == {}
        assert any("not a mapping" in r["message"] for r in log_messages)

    def test_broken_yaml_is_logged(self, tmp_path, log_messages):
        options = tmp_path / "supervision.yaml"
        options.write_text("timeout: [unclosed\n")

        assert load_options_file(str(options)) == {}
        assert any(r["level"].name == "ERROR" for r in log_messages)


class TestSettings:

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("PROMISE_POLICE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("PROMISE_POLICE_ENABLED", "false")

        env_settings = Settings()

        assert env_settings.LOG_LEVEL == "DEBUG"
        assert env_settings.ENABLED is False

    def test_defaults(self, monkeypatch):
        for name in ("LOG_LEVEL", "LOG_FILE", "JSON_LOGS", "OPTIONS_FILE", "ENABLED"):
            monkeypatch.delenv(f"PROMISE_POLICE_{name}", raising=False)

        defaults = Settings(_env_file=None)

        assert defaults.LOG_LEVEL == "INFO"
        assert defaults.LOG_FILE is None
        assert defaults.OPTIONS_FILE is None
        assert defaults.ENABLED is True
