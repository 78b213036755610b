"""
Tests for the configuration-based logging setup.
"""

import logging
import pytest

from valter.config_loader import deep_merge, get_config_value, get_default_config


@pytest.mark.parametrize("level_str", ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
def test_logging_levels(level_str):
    """Test that each configured level maps to its logging constant."""
    from streamlit_app import get_logging_level

    assert get_logging_level(level_str) == getattr(logging, level_str)


def test_level_is_case_insensitive():
    from streamlit_app import get_logging_level

    assert get_logging_level('debug') == logging.DEBUG


def test_invalid_level_falls_back_to_info():
    from streamlit_app import get_logging_level

    assert get_logging_level('VERBOSE') == logging.INFO
    assert get_logging_level(None) == logging.INFO


def test_level_read_from_config():
    config = deep_merge(get_default_config(), {'logging': {'level': 'WARNING'}})

    assert get_config_value('logging', 'level', 'INFO', config) == 'WARNING'
    assert get_config_value('logging', 'format', None, config) == \
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
