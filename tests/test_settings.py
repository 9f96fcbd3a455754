"""
Unit tests for pacing configuration and logging setup.
"""
import json
import logging

import pytest

from discord_purge.log import LOGGER_NAME, setup_logging
from discord_purge.settings import Pacing, load_settings


def write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding='utf-8')
    return str(path)


class TestPacing:
    """Test the Pacing policy."""

    def test_defaults(self):
        pacing = Pacing()
        assert pacing.delete == 0.35
        assert pacing.error_backoff == 1.25
        assert pacing.index_wait == 3.0

    def test_override(self):
        assert Pacing(delete=1).delete == 1.0

    def test_unknown_key(self):
        with pytest.raises(TypeError):
            Pacing(turbo=0)

    def test_none_is_all_zero(self):
        assert set(Pacing.none().as_dict().values()) == {0.0}


class TestLoadSettings:
    """Test load_settings."""

    def test_no_file(self):
        assert load_settings(None).as_dict() == Pacing().as_dict()

    def test_delay_suffix_and_bare_names(self, tmp_path):
        path = write_config(tmp_path, {'settings': {'search_delay': 2, 'reaction': 0.5}})

        pacing = load_settings(path)

        assert pacing.search == 2.0
        assert pacing.reaction == 0.5
        assert pacing.delete == 0.35

    def test_unknown_keys_ignored(self, tmp_path):
        path = write_config(tmp_path, {'settings': {'unrelated': True}, 'other': 1})
        assert load_settings(path).as_dict() == Pacing().as_dict()

    def test_negative_clamped(self, tmp_path):
        path = write_config(tmp_path, {'settings': {'delete_delay': -3}})
        assert load_settings(path).delete == 0.0

    def test_invalid_json(self, tmp_path):
        path = write_config(tmp_path, "{oops")
        with pytest.raises(ValueError):
            load_settings(path)

    def test_bad_value(self, tmp_path):
        path = write_config(tmp_path, {'settings': {'delete_delay': 'fast'}})
        with pytest.raises(ValueError):
            load_settings(path)

    def test_settings_not_object(self, tmp_path):
        path = write_config(tmp_path, {'settings': [1, 2]})
        with pytest.raises(ValueError):
            load_settings(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_settings(str(tmp_path / "missing.json"))


class TestSetupLogging:
    """Test setup_logging."""

    def test_file_and_console_handlers(self, tmp_path):
        log_file = tmp_path / "purge.log"

        logger = setup_logging('WARNING', str(log_file))
        try:
            assert logger.name == LOGGER_NAME
            assert len(logger.handlers) == 2
            file_handler, console_handler = logger.handlers
            assert file_handler.level == logging.DEBUG
            assert console_handler.level == logging.WARNING

            logging.getLogger('discord_purge.search').debug("walking")
            file_handler.flush()
            assert "walking" in log_file.read_text(encoding='utf-8')
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_repeated_setup_does_not_duplicate(self, tmp_path):
        log_file = str(tmp_path / "purge.log")

        setup_logging('INFO', log_file)
        logger = setup_logging('INFO', log_file)
        try:
            assert len(logger.handlers) == 2
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
