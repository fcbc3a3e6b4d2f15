"""Tests for configuration loading and BuildConfig merging."""

from __future__ import annotations

import argparse
import dataclasses

import pytest

from yap.modules.config import BuildConfig, YapConfig

CONF = """\
[build]
parallel = yes
max_workers = 3
nomakedeps = true

[logging]
level = debug
"""


@pytest.fixture
def conf(tmp_path):
    path = tmp_path / "yap.conf"
    path.write_text(CONF)
    return YapConfig(locations=[str(tmp_path / "absent.conf"), str(path)])


def test_first_existing_file_is_loaded(conf, tmp_path) -> None:
    assert conf.loaded_from == str(tmp_path / "yap.conf")
    assert conf.getboolean("build", "parallel") is True
    assert conf.getint("build", "max_workers") == 3
    assert conf.get("logging", "level") == "debug"
    assert conf.get("logging", "missing", "fallback") == "fallback"


def test_missing_file_means_defaults(tmp_path) -> None:
    empty = YapConfig(locations=[str(tmp_path / "nope.conf")])
    assert empty.loaded_from is None
    assert empty.getboolean("build", "parallel", fallback=False) is False
    assert empty.getint("build", "max_workers", fallback=7) == 7
    assert empty.getlist("build", "extra") == []


def test_env_override(monkeypatch, tmp_path) -> None:
    path = tmp_path / "env.conf"
    path.write_text("[build]\nskip_sync = 1\n")
    monkeypatch.setenv("YAP_CONFIG", str(path))
    assert YapConfig().getboolean("build", "skip_sync") is True


def _args(**overrides):
    values = dict(parallel=False, cleanbuild=False, nobuild=False, nomakedeps=False,
                  skip_sync=False, zap=False, from_pkg=None, to_pkg=None,
                  target_arch=None, jobs=None, verbose=False)
    values.update(overrides)
    return argparse.Namespace(**values)


def test_from_args_falls_back_to_file(conf) -> None:
    cfg = BuildConfig.from_args(_args(), conf)
    assert cfg.parallel is True
    assert cfg.skip_make_deps is True
    assert cfg.max_workers == 3
    assert cfg.workers == 3
    assert cfg.from_pkg == ""


def test_cli_flags_win(conf) -> None:
    cfg = BuildConfig.from_args(_args(jobs=8, to_pkg="b", target_arch="aarch64", zap=True), conf)
    assert cfg.max_workers == 8
    assert cfg.to_pkg == "b"
    assert cfg.target_arch == "aarch64"
    assert cfg.zap is True


def test_build_config_is_frozen() -> None:
    cfg = BuildConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.parallel = True
    assert cfg.workers >= 1
