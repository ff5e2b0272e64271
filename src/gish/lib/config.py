"""Configuration loading: CLI flags → env vars → .env file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CHECKOUT_ARGS = "--no-minimize-url"
DEFAULT_DISCOVER_JOBS = 4
MAX_DISCOVER_JOBS = 64

ConfigValue = str | bool | int | Path | None

_TRUTHY = ("1", "true", "yes")


def _load_env_files() -> None:
    """Load a dotenv file from the cwd, never overriding the real environment."""
    load_dotenv(Path.cwd() / ".env", override=False)


def _parse_jobs(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("GISH_DISCOVER_JOBS=%r is not an integer; ignoring", raw)
        return None


@dataclass(frozen=True)
class Config:
    """Immutable application configuration."""

    default_checkout_args: str = DEFAULT_CHECKOUT_ARGS
    verbose: bool = False
    alternate_cache: Path | None = None
    discover_jobs: int = DEFAULT_DISCOVER_JOBS
    prompt_checkout_args: bool = False

    def __post_init__(self) -> None:
        """Validate config fields on creation.

        ``discover_jobs`` must be between 1 and ``MAX_DISCOVER_JOBS``.  A
        blank ``default_checkout_args`` falls back to the built-in default
        with a warning, since ``git svn clone`` would otherwise minimize
        the URL of every external.
        """
        if not 1 <= self.discover_jobs <= MAX_DISCOVER_JOBS:
            msg = f"discover_jobs must be between 1 and {MAX_DISCOVER_JOBS}"
            raise ValueError(msg)
        if not self.default_checkout_args.strip():
            logger.warning(
                "empty default checkout args; using %r", DEFAULT_CHECKOUT_ARGS
            )
            object.__setattr__(self, "default_checkout_args", DEFAULT_CHECKOUT_ARGS)

    @classmethod
    def from_env(cls, overrides: dict[str, ConfigValue] | None = None) -> Config:
        """Build config from environment variables, then apply overrides.

        Priority: overrides (CLI flags) > env vars > defaults.
        """
        _load_env_files()

        alt_cache = os.environ.get("GISH_ALT_CACHE", "").strip()
        env_values: dict[str, ConfigValue] = {
            "default_checkout_args": os.environ.get("GISH_CHECKOUT_ARGS"),
            "verbose": os.environ.get("GISH_VERBOSE", "").lower() in _TRUTHY,
            "alternate_cache": Path(alt_cache).expanduser() if alt_cache else None,
            "discover_jobs": _parse_jobs(os.environ.get("GISH_DISCOVER_JOBS")),
        }

        merged = {k: v for k, v in env_values.items() if v is not None}
        if overrides:
            merged.update({k: v for k, v in overrides.items() if v is not None})

        alternate = merged.get("alternate_cache")
        return cls(
            default_checkout_args=str(
                merged.get("default_checkout_args", cls.default_checkout_args)
            ),
            verbose=bool(merged.get("verbose", cls.verbose)),
            alternate_cache=Path(alternate) if alternate else None,
            discover_jobs=int(merged.get("discover_jobs", cls.discover_jobs)),
            prompt_checkout_args=bool(
                merged.get("prompt_checkout_args", cls.prompt_checkout_args)
            ),
        )
