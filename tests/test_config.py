import dataclasses
import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import config
from config import CacheConfig


def test_defaults(tmp_path):
    cache_config = CacheConfig.from_args(["--cache", str(tmp_path)])

    assert cache_config.cache_dir == tmp_path.resolve()
    assert cache_config.host == config.DEFAULT_HOST
    assert cache_config.port == config.DEFAULT_PORT
    assert cache_config.max_body_size == config.MAX_BODY_SIZE
    assert cache_config.log_dir == Path(config.LOG_DIR)


def test_short_flags(tmp_path):
    cache_config = CacheConfig.from_args(["-h", "0.0.0.0", "-p", "9000", "-c", str(tmp_path)])

    assert cache_config.host == "0.0.0.0"
    assert cache_config.port == 9000


def test_relative_cache_dir_is_resolved(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    cache_config = CacheConfig.from_args(["-c", "images"])

    assert cache_config.cache_dir.is_absolute()
    assert cache_config.cache_dir == (tmp_path / "images").resolve()


def test_max_body_size(tmp_path):
    cache_config = CacheConfig.from_args(["-c", str(tmp_path), "--max-body-size", "1024"])
    assert cache_config.max_body_size == 1024


@pytest.mark.parametrize("argv", [
    [],
    ["-p", "8080"],
    ["-c", "cache", "-p", "0"],
    ["-c", "cache", "-p", "70000"],
    ["-c", "cache", "-p", "http"],
    ["-c", "cache", "--max-body-size", "0"],
])
def test_invalid_arguments_exit_with_usage_error(argv):
    with pytest.raises(SystemExit) as exc_info:
        CacheConfig.from_args(argv)
    assert exc_info.value.code == 2


def test_config_is_immutable(tmp_path):
    cache_config = CacheConfig(cache_dir=tmp_path)
    with pytest.raises(dataclasses.FrozenInstanceError):
        cache_config.port = 1
