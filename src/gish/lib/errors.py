"""Exception hierarchy shared by the library and the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gish.lib.command import CommandResult

__all__ = [
    "CommandFailedError",
    "ConfigCorruptError",
    "ConfigNotFoundError",
    "ExternalPathError",
    "GishError",
    "ParseError",
    "RepoConflictError",
    "ResolutionError",
]


class GishError(Exception):
    """Base class for every error gish reports to the user."""


class ResolutionError(GishError):
    """An external reference uses a relative kind that cannot be resolved."""

    def __init__(self, reference: str, kind: str) -> None:
        self.reference = reference
        self.kind = kind
        super().__init__(f"unhandled relative external kind {kind!r} in {reference!r}")


class ParseError(GishError):
    """An externals listing could not be turned into entries."""


class ConfigNotFoundError(GishError):
    """No cached tree exists at the requested location."""


class ConfigCorruptError(GishError):
    """A cache file exists but cannot be read as a tree."""


class RepoConflictError(GishError):
    """A path exists where a repository is expected, but is not one."""


class ExternalPathError(GishError):
    """An external resolves to a path outside the repository declaring it."""


class CommandFailedError(GishError):
    """A delegated version-control command failed."""

    def __init__(self, result: CommandResult, action: str | None = None) -> None:
        self.result = result
        what = action or " ".join(result.command)
        detail = result.stderr.strip()
        msg = f"{what} failed in {result.cwd} (exit {result.exit_code})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
