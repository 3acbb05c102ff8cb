# tests/balanced_split/test_config.py
from __future__ import annotations

import logging
from pathlib import Path

import pytest

from balanced_split.config import SplitterConfig

BASE = {
    "BALANCED_SPLIT_ROOT_DIR": "/data/store",
    "BALANCED_SPLIT_CONTROL_URL": "http://ctl:8080",
}


def test_defaults_from_minimal_environment():
    config = SplitterConfig.from_env(BASE)
    assert config.root_dir == Path("/data/store")
    assert config.poll_interval_s == 30.0
    assert config.max_poll_attempts is None
    assert config.log_path("usertable") == Path("/data/store/usertable/_balancedSplit")
    assert config.codec().max_value == 0x7FFFFFFF
    assert config.level == logging.INFO
    assert config.log_dir is None


def test_overrides():
    config = SplitterConfig.from_env({
        **BASE,
        "BALANCED_SPLIT_POLL_INTERVAL": "2.5",
        "BALANCED_SPLIT_MAX_POLLS": "120",
        "BALANCED_SPLIT_KEY_WIDTH": "4",
        "BALANCED_SPLIT_KEY_MAX": "ffff",
        "BALANCED_SPLIT_LOG_DIR": "/var/log/split",
        "BALANCED_SPLIT_LOG_LEVEL": "debug",
        "BALANCED_SPLIT_LOG_FILENAME": "_plan",
    })
    assert config.poll_interval_s == 2.5
    assert config.max_poll_attempts == 120
    assert config.codec().encode(0xABC) == b"0abc"
    assert config.codec().max_value == 0xFFFF
    assert config.log_dir == Path("/var/log/split")
    assert config.level == logging.DEBUG
    assert config.log_path("t").name == "_plan"


@pytest.mark.parametrize("missing", sorted(BASE))
def test_required_variables(missing):
    environ = {k: v for k, v in BASE.items() if k != missing}
    with pytest.raises(ValueError, match=missing):
        SplitterConfig.from_env(environ)


@pytest.mark.parametrize("name,value", [
    ("BALANCED_SPLIT_POLL_INTERVAL", "soon"),
    ("BALANCED_SPLIT_MAX_POLLS", "0"),
    ("BALANCED_SPLIT_KEY_MAX", "xyz"),
])
def test_malformed_values(name, value):
    with pytest.raises(ValueError, match=name):
        SplitterConfig.from_env({**BASE, name: value})


def test_unknown_log_level():
    config = SplitterConfig.from_env({**BASE, "BALANCED_SPLIT_LOG_LEVEL": "chatty"})
    with pytest.raises(ValueError):
        config.level
