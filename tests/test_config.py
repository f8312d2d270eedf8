"""Tests for bninfer/config.py and bninfer/logging_config.py."""

from __future__ import annotations

import logging

import pytest
import yaml

from bninfer.bayes_ball import DEFAULT_MAX_STEPS
from bninfer.config import get_default_config, load_config, merge_config, save_config
from bninfer.logging_config import setup_logging


class TestConfig:

    def test_defaults(self) -> None:
        config = load_config()
        assert config == get_default_config()
        assert config["output"]["decimals"] == 5
        assert config["bayes_ball"]["max_steps"] == DEFAULT_MAX_STEPS == 1_000_000

    def test_user_file_is_merged_over_defaults(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"bayes_ball": {"max_steps": 10}, "extra": {"x": 1}}), encoding="utf-8")
        config = load_config(str(path))
        assert config["bayes_ball"]["max_steps"] == 10
        assert config["output"]["decimals"] == 5
        assert config["extra"] == {"x": 1}

    def test_empty_file(self, tmp_path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == get_default_config()

    def test_non_mapping_rejected(self, tmp_path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_merge_does_not_mutate(self) -> None:
        base = get_default_config()
        merged = merge_config(base, {"logging": {"level": "DEBUG"}})
        assert merged["logging"] == {"level": "DEBUG", "file": None}
        assert base["logging"]["level"] == "INFO"

    def test_save_and_load(self, tmp_path) -> None:
        config = merge_config(get_default_config(), {"output": {"decimals": 3}})
        path = tmp_path / "nested" / "saved.yaml"
        save_config(config, str(path))
        assert load_config(str(path)) == config


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_file_handler(self, tmp_path) -> None:
        log_file = tmp_path / "logs" / "run.log"
        setup_logging(level="debug", log_file=str(log_file))
        logging.getLogger("bninfer.test").debug("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello from the test" in log_file.read_text(encoding="utf-8")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError):
            setup_logging(level="chatty")
