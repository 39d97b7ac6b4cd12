import os
import sys

import pytest
from loguru import logger

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from log_config import setup_logger
from settings_schema import SettingsSchema, load_settings, validate_settings


class TestYamlConfig:
    def test_missing_file_loads_empty(self, tmp_path):
        assert YamlConfig(str(tmp_path / "none.yaml")).load() == {}

    def test_save_and_load(self, tmp_path):
        cfg = YamlConfig(str(tmp_path / "settings.yaml"))
        cfg.save({"product_name": "Iron Plans", "log_level": "DEBUG"})
        assert cfg.load() == {"product_name": "Iron Plans", "log_level": "DEBUG"}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            YamlConfig(str(path)).load()


class TestSettingsSchema:
    def test_defaults(self):
        settings = SettingsSchema()
        assert settings.db_path == "plans.db"
        assert settings.log_file is None
        assert settings.export_dir == "."

    def test_invalid_value(self):
        with pytest.raises(ValueError):
            validate_settings({"pdf_compression": "sometimes"})

    def test_load_ignores_unknown_keys(self):
        settings = load_settings({"product_name": "X", "exported_pdfs": "4"})
        assert settings.product_name == "X"
        assert not hasattr(settings, "exported_pdfs")


class TestLogger:
    def test_file_sink(self, tmp_path):
        log_file = tmp_path / "logs" / "planner.log"
        setup_logger("DEBUG", str(log_file))
        logger.info("planner started")
        logger.remove()
        assert log_file.parent.is_dir()
        assert any(log_file.parent.iterdir())
