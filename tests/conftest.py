"""Shared fixtures: an in-memory stand-in for the git-svn boundary."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from gish.lib.command import CommandResult
from gish.lib.errors import CommandFailedError
from gish.lib.git_svn import GitSvn, SvnInfo

REPOSITORY_ROOT = "svn://host/repo"


class FakeGitSvn(GitSvn):
    """Records calls; ``clone`` materializes a ``.git`` dir like the real one."""

    def __init__(self, *, interactive: bool = True) -> None:
        super().__init__(interactive=interactive)
        self.urls: dict[str, str] = {}
        self.listings: dict[str, str] = {}
        self.would_remove: dict[str, list[str]] = {}
        self.exit_codes: dict[str, int] = {}
        self.failures: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []
        self.clone_args: dict[str, list[str]] = {}

    def _record(self, action: str, path: str | Path) -> None:
        self.calls.append((action, str(path)))
        if (action, str(path)) in self.failures:
            result = CommandResult(
                command=["git", action],
                cwd=str(path),
                exit_code=1,
                stdout="",
                stderr=f"{action} exploded",
            )
            raise CommandFailedError(result, f"git {action}")

    def info(self, path: str | Path) -> SvnInfo:
        self._record("info", path)
        return SvnInfo(url=self.urls.get(str(path), ""), repository_root=REPOSITORY_ROOT)

    def show_externals(self, path: str | Path) -> str:
        self._record("show-externals", path)
        return self.listings.get(str(path), "")

    def clone(self, url: str, dest: str | Path, args: Sequence[str]) -> None:
        self._record("clone", dest)
        (Path(dest) / ".git" / "info").mkdir(parents=True)
        self.urls[str(dest)] = url
        self.clone_args[str(dest)] = list(args)

    def rebase(self, path: str | Path) -> None:
        self._record("rebase", path)

    def clean_dry_run(self, path: str | Path) -> list[str]:
        self._record("clean", path)
        return list(self.would_remove.get(str(path), []))

    def passthrough(self, path: str | Path, argv: Sequence[str]) -> CommandResult:
        self._record("passthrough", path)
        return CommandResult(
            command=["git", *argv],
            cwd=str(path),
            exit_code=self.exit_codes.get(str(path), 0),
            stdout="",
            stderr="",
        )


def make_checkout(path: Path) -> Path:
    """Create an (empty) directory that looks like a git checkout."""
    (path / ".git" / "info").mkdir(parents=True)
    return path


@pytest.fixture
def fake_git() -> FakeGitSvn:
    return FakeGitSvn()
