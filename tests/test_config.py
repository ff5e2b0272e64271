"""Tests for gish.lib.config."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

import gish.lib.config as config_module
from gish.lib.config import DEFAULT_CHECKOUT_ARGS, Config

_ENV_VARS = (
    "GISH_CHECKOUT_ARGS",
    "GISH_VERBOSE",
    "GISH_ALT_CACHE",
    "GISH_DISCOVER_JOBS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestConfigDefaults:
    def test_defaults(self) -> None:
        config = Config()
        assert config.default_checkout_args == DEFAULT_CHECKOUT_ARGS
        assert config.verbose is False
        assert config.alternate_cache is None
        assert config.discover_jobs == 4
        assert config.prompt_checkout_args is False

    def test_from_env_picks_up_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GISH_CHECKOUT_ARGS", "--no-minimize-url -r HEAD")
        monkeypatch.setenv("GISH_VERBOSE", "yes")
        monkeypatch.setenv("GISH_ALT_CACHE", "/srv/externals")
        monkeypatch.setenv("GISH_DISCOVER_JOBS", "8")

        config = Config.from_env()

        assert config.default_checkout_args == "--no-minimize-url -r HEAD"
        assert config.verbose is True
        assert config.alternate_cache == Path("/srv/externals")
        assert config.discover_jobs == 8

    def test_overrides_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GISH_ALT_CACHE", "/from/env")
        config = Config.from_env(
            overrides={"alternate_cache": Path("/from/cli"), "verbose": None}
        )
        assert config.alternate_cache == Path("/from/cli")
        assert config.verbose is False

    def test_from_env_loads_dotenv(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        loaded_paths: list[Path] = []
        env_file = tmp_path / ".env"
        env_file.write_text("GISH_CHECKOUT_ARGS=-r 1\n")

        def fake_load_dotenv(path: Path, override: bool = False) -> bool:
            loaded_paths.append(path)
            if path == env_file:
                os.environ["GISH_CHECKOUT_ARGS"] = "-r 1"
            return True

        monkeypatch.setattr(config_module, "load_dotenv", fake_load_dotenv)
        try:
            config = Config.from_env()
            assert config.default_checkout_args == "-r 1"
            assert env_file in loaded_paths
        finally:
            os.environ.pop("GISH_CHECKOUT_ARGS", None)

    def test_real_dotenv_does_not_override_env(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".env").write_text("GISH_CHECKOUT_ARGS=-r 1\n")
        monkeypatch.setenv("GISH_CHECKOUT_ARGS", "-r 2")
        assert Config.from_env().default_checkout_args == "-r 2"


class TestConfigValidation:
    @pytest.mark.parametrize("jobs", [0, -1, 65])
    def test_discover_jobs_out_of_range(self, jobs: int) -> None:
        with pytest.raises(ValueError, match="discover_jobs"):
            Config(discover_jobs=jobs)

    def test_non_integer_jobs_env_ignored(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("GISH_DISCOVER_JOBS", "many")
        with caplog.at_level(logging.WARNING):
            config = Config.from_env()
        assert config.discover_jobs == 4
        assert "not an integer" in caplog.text

    def test_blank_checkout_args_fall_back(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            config = Config(default_checkout_args="   ")
        assert config.default_checkout_args == DEFAULT_CHECKOUT_ARGS
        assert "empty default checkout args" in caplog.text

    @pytest.mark.parametrize("raw", ["0", "-1", "100"])
    def test_out_of_range_jobs_env_rejected(
        self, monkeypatch: pytest.MonkeyPatch, raw: str
    ) -> None:
        monkeypatch.setenv("GISH_DISCOVER_JOBS", raw)
        with pytest.raises(ValueError, match="discover_jobs"):
            Config.from_env()
