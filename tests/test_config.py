"""Tests for config loading, asset lookup and structured logging."""

from __future__ import annotations

import logging

import pytest
import yaml

from bommai.config import (
    ASSETS_DIR,
    CONFIG_PATH,
    DEFAULT_CONFIG,
    ensure_logger,
    load_config,
    log_event,
    resolve_asset,
    resolve_config_path,
)
from bommai.errors import ConfigError


@pytest.fixture()
def cfg_file(tmp_path):
    return tmp_path / "bommai.yaml"


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


class TestLoadConfig:
    def test_missing_file_written_with_defaults(self, cfg_file):
        cfg = load_config(cfg_file)
        assert cfg_file.exists()
        on_disk = yaml.safe_load(cfg_file.read_text(encoding="utf-8"))
        assert on_disk["commands"]["sit"] == DEFAULT_CONFIG["commands"]["sit"]
        assert cfg["speech"]["lang"] == "ta-IN"
        assert cfg["config_path"] == str(cfg_file)

    def test_sections_merge_over_defaults(self, cfg_file):
        write_yaml(cfg_file, {"controller": {"restart_delay_ms": 500}})
        cfg = load_config(cfg_file)
        assert cfg["controller"]["restart_delay_ms"] == 500
        assert cfg["controller"]["default_action"] == "sit"
        assert cfg["messages"]["stopped"] == DEFAULT_CONFIG["messages"]["stopped"]

    def test_command_table_replaced_not_merged(self, cfg_file):
        write_yaml(cfg_file, {"commands": {"wave": ["கை அசை"]}, "numerals": {"ஒன்று": 1}})
        cfg = load_config(cfg_file)
        assert cfg["commands"] == {"wave": ["கை அசை"]}
        assert cfg["numerals"] == {"ஒன்று": 1}

    def test_null_section_normalized(self, cfg_file):
        cfg_file.write_text("ui:\n", encoding="utf-8")
        assert load_config(cfg_file)["ui"] == {}

    def test_empty_file_gives_defaults(self, cfg_file):
        cfg_file.write_text("", encoding="utf-8")
        assert load_config(cfg_file)["speech"]["engine"] == "google"

    def test_non_mapping_root_rejected(self, cfg_file):
        cfg_file.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(cfg_file)

    def test_defaults_not_mutated(self, cfg_file):
        cfg = load_config(cfg_file)
        cfg["commands"]["sit"].append("x")
        assert "x" not in DEFAULT_CONFIG["commands"]["sit"]


class TestResolvePaths:
    def test_explicit_path_wins(self, cfg_file, monkeypatch):
        monkeypatch.setenv("BOMMAI_CONFIG", "/elsewhere.yaml")
        assert resolve_config_path(cfg_file) == cfg_file

    def test_env_var(self, cfg_file, monkeypatch):
        monkeypatch.setenv("BOMMAI_CONFIG", str(cfg_file))
        assert resolve_config_path() == cfg_file

    def test_default_path(self, monkeypatch):
        monkeypatch.delenv("BOMMAI_CONFIG", raising=False)
        assert resolve_config_path() == CONFIG_PATH

    def test_bundled_asset(self):
        assert resolve_asset("sit.json") == ASSETS_DIR / "sit.json"
        assert resolve_asset("sit.json").exists()

    def test_asset_beside_config_preferred(self, cfg_file):
        local = cfg_file.parent / "sit.json"
        local.write_text("{}", encoding="utf-8")
        assert resolve_asset("sit.json", str(cfg_file)) == local

    def test_absolute_asset(self, tmp_path):
        target = tmp_path / "custom.json"
        assert resolve_asset(str(target)) == target


class TestLogging:
    def test_logger_writes_file(self, tmp_path):
        logger, log_path = ensure_logger({"dir": str(tmp_path), "debug": True})
        try:
            log_event(logger, "boot", {"engine": "text"})
            for h in logger.handlers:
                h.flush()
            assert logger.level == logging.DEBUG
            with open(log_path, encoding="utf-8") as f:
                assert 'boot {"engine": "text"}' in f.read()
        finally:
            for h in list(logger.handlers):
                h.close()
            logger.handlers.clear()

    def test_log_event_keeps_tamil_readable(self, caplog):
        logger = logging.getLogger("test_config")
        with caplog.at_level(logging.INFO, logger="test_config"):
            log_event(logger, "command_match", {"text": "ஆடு"})
        assert 'command_match {"text": "ஆடு"}' in caplog.text

    def test_log_event_unserializable_payload(self, caplog):
        logger = logging.getLogger("test_config")
        with caplog.at_level(logging.INFO, logger="test_config"):
            log_event(logger, "odd", {"value": object()})
        assert "odd {'value': <object" in caplog.text
