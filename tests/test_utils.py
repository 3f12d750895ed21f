"""Tests for configuration and logging helpers."""

import logging

import pytest
from geo_index import utils


def test_load_config(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("search:\n  default_max_results: 5\n")

    assert utils.load_config(str(path)) == {"search": {"default_max_results": 5}}


def test_load_empty_config(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")

    assert utils.load_config(str(path)) == {}


def test_load_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        utils.load_config(str(tmp_path / "missing.yml"))


def test_env_var_substitution(monkeypatch):
    """Test that ${VAR} placeholders are filled from the environment."""
    monkeypatch.setenv("GEO_INDEX_FILE", "/data/cities.txt")
    monkeypatch.delenv("GEO_INDEX_UNSET", raising=False)

    config = {
        "server": {"geonames_file": "${GEO_INDEX_FILE}", "port": 8080},
        "paths": ["${GEO_INDEX_UNSET}/x", "plain"],
    }
    result = utils.load_config_with_env_vars(config)

    assert result["server"] == {"geonames_file": "/data/cities.txt", "port": 8080}
    assert result["paths"] == ["/x", "plain"]


def test_init_logger():
    logger = utils.init_logger(debug=True)
    assert logger.name == "geo_index"
    assert logger.level == logging.DEBUG

    # Re-initialising does not stack handlers
    logger = utils.init_logger()
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
