"""git-svn command boundary.

Every interaction with ``git``/``git svn`` goes through :class:`GitSvn` so
the tree logic can be exercised without a real checkout or server.
Checkouts, rebases and passthrough commands own the terminal (the user may
be asked for svn credentials); queries capture their output.
"""

from __future__ import annotations

__all__ = [
    "GitSvn",
    "SvnInfo",
    "find_root_repo_path",
    "git_noninteractive_env",
    "is_repo",
    "parse_svn_info",
]

import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from gish.lib.command import CommandResult, run_command, run_interactive
from gish.lib.errors import CommandFailedError, GishError

Runner = Callable[..., CommandResult]

_WOULD_REMOVE = "Would remove "


def git_noninteractive_env() -> dict[str, str]:
    """Return a copy of the environment with interactive git prompts disabled.

    Sets ``GIT_TERMINAL_PROMPT=0`` and ``GCM_INTERACTIVE=never`` so that
    credential helpers never block on stdin in concurrent contexts.
    """
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    return env


def is_repo(path: str | Path) -> bool:
    """Return True if *path* contains a ``.git`` directory."""
    return (Path(path) / ".git").is_dir()


def find_root_repo_path(start: str | Path) -> Path:
    """Return the outermost repository containing *start*.

    Raises:
        GishError: If neither *start* nor any of its parents is a repo.
    """
    start = Path(start).resolve()
    for candidate in [*reversed(start.parents), start]:
        if is_repo(candidate):
            return candidate
    raise GishError(f"No .git found in {start} or any parent dir.")


def parse_svn_info(text: str) -> dict[str, str]:
    """Parse ``git svn info`` output into a ``label -> value`` mapping."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        label, sep, value = line.partition(":")
        if sep:
            fields.setdefault(label.strip(), value.strip())
    return fields


@dataclass(frozen=True)
class SvnInfo:
    """The parts of ``git svn info`` the externals tree depends on."""

    url: str
    repository_root: str


class GitSvn:
    """Run git-svn commands against checkouts on disk."""

    def __init__(
        self,
        *,
        interactive: bool = True,
        runner: Runner = run_command,
        terminal: Runner = run_interactive,
    ) -> None:
        self.interactive = interactive
        self._runner = runner
        self._terminal = terminal

    def _capture(self, path: str | Path, argv: Sequence[str]) -> CommandResult:
        if self.interactive:
            return self._runner(list(argv), path)
        return self._runner(
            list(argv), path, detach_stdin=True, env=git_noninteractive_env()
        )

    def _checked(
        self, path: str | Path, argv: Sequence[str], action: str
    ) -> CommandResult:
        result = self._capture(path, argv)
        if not result.success:
            raise CommandFailedError(result, action)
        return result

    def info(self, path: str | Path) -> SvnInfo:
        """Return the svn URL and repository root URL of the checkout at *path*."""
        result = self._checked(path, ["git", "svn", "info"], "git svn info")
        fields = parse_svn_info(result.stdout)
        for label in ("URL", "Repository Root"):
            if not fields.get(label):
                raise GishError(f"attribute {label} not found in git svn info for {path}")
        return SvnInfo(url=fields["URL"], repository_root=fields["Repository Root"])

    def show_externals(self, path: str | Path) -> str:
        """Return the raw externals listing of the checkout at *path*."""
        result = self._checked(
            path, ["git", "svn", "show-externals"], "git svn show-externals"
        )
        return result.stdout

    def clone(self, url: str, dest: str | Path, args: Sequence[str]) -> None:
        """``git svn clone`` *url* into the (possibly empty) directory *dest*."""
        dest = Path(dest)
        result = self._terminal(
            ["git", "svn", "clone", *args, url, dest.name], dest.parent
        )
        if not result.success:
            raise CommandFailedError(result, f"git svn clone {url}")

    def rebase(self, path: str | Path) -> None:
        """Update the checkout at *path* from svn."""
        result = self._terminal(["git", "svn", "rebase"], path)
        if not result.success:
            raise CommandFailedError(result, "git svn rebase")

    def clean_dry_run(self, path: str | Path) -> list[str]:
        """Return the repo-relative paths ``git clean -ndx`` would remove."""
        result = self._checked(path, ["git", "clean", "-ndx"], "git clean -ndx")
        paths: list[str] = []
        for line in result.stdout.splitlines():
            if not line.startswith(_WOULD_REMOVE):
                continue
            rel = line[len(_WOULD_REMOVE) :].strip().strip("/")
            if rel:
                paths.append(rel)
        return paths

    def passthrough(self, path: str | Path, argv: Sequence[str]) -> CommandResult:
        """Run ``git <argv>`` in *path* attached to the terminal."""
        return self._terminal(["git", *argv], path)
