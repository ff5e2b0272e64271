"""Recursive operations over an externals tree.

All operations walk the tree depth first, parents before children, one
process at a time: a child checkout needs its parent's working copy, and
only one child process can own the terminal for credential prompts.

Failure policy differs per operation:
- synchronize is fail-fast; the first failing node aborts the run (a
  re-run resumes, since existing checkouts are only updated);
- clean and passthrough fan-out are best-effort per entry/node.
"""

from __future__ import annotations

__all__ = [
    "Synchronizer",
    "clean",
    "clean_candidates",
    "fan_out",
    "fetch_externals",
]

import logging
import os
import shlex
import shutil
from collections.abc import Callable, Sequence
from pathlib import Path, PurePath

from gish.lib.cache import ConfigStore
from gish.lib.command import CommandResult
from gish.lib.config import Config
from gish.lib.errors import RepoConflictError
from gish.lib.externals import parse_externals
from gish.lib.git_svn import GitSvn, is_repo
from gish.lib.ignores import ignore_externals
from gish.lib.repo import RepoNode

logger = logging.getLogger(__name__)


def fetch_externals(node: RepoNode, git: GitSvn) -> None:
    """Query svn for *node*'s externals and make them its children."""
    info = git.info(node.path)
    raw = git.show_externals(node.path)
    node.set_externals(parse_externals(raw, node.path, info.repository_root))


class Synchronizer:
    """Clone missing checkouts and rebase existing ones, recursively.

    The tree is saved after every node settles, so progress survives a
    failure further down.
    """

    def __init__(
        self,
        git: GitSvn,
        store: ConfigStore,
        config: Config,
        *,
        prompt: Callable[[str], str] = input,
    ) -> None:
        self.git = git
        self.store = store
        self.config = config
        self._prompt = prompt

    def run(self, root: RepoNode) -> None:
        """Synchronize the whole tree anchored at *root*.

        Raises:
            RepoConflictError: A non-repository directory occupies a checkout
                slot.
            CommandFailedError: A checkout, update or externals query failed.
            ParseError: An externals listing could not be resolved.
        """
        if not root.is_root:
            raise ValueError(f"synchronize needs the tree root, got {root.path}")
        self._sync(root, root)

    def _sync(self, node: RepoNode, root: RepoNode) -> None:
        path = Path(node.path)
        if is_repo(path):
            print(f"Path {path} is a repo, updating from svn.")
            self.git.rebase(path)
        elif path.exists():
            raise RepoConflictError(f"Path {path} exists but is not a repo.")
        else:
            print(f"Cloning {str(path)!r} from svn url {node.url!r}")
            path.mkdir(parents=True)
            self.git.clone(node.url, path, self._checkout_args(node))

        if not node.externals_known:
            self._load_externals(node, root)
            ignore_externals(node)

        self.store.save(root)

        for child in node.children:
            self._sync(child, root)

    def _load_externals(self, node: RepoNode, root: RepoNode) -> None:
        relative = os.path.relpath(node.path, root.path)
        if self.store.adopt_alternate(node.path, relative):
            self.store.migrate_legacy(node, recursive=False)
            return
        fetch_externals(node, self.git)

    def _checkout_args(self, node: RepoNode) -> list[str]:
        if self.config.prompt_checkout_args:
            try:
                answer = self._prompt(
                    f"Provide checkout args for {node.url}:\n> "
                ).strip()
            except EOFError:
                answer = ""
            if answer:
                node.checkout_args = answer
        if node.checkout_args:
            return shlex.split(node.checkout_args)
        return shlex.split(self.config.default_checkout_args)


def _protected_paths(node: RepoNode) -> set[str]:
    """Direct externals of *node* plus the directories that contain them."""
    protected: set[str] = set()
    for rel_path in node.relative_child_paths():
        pure = PurePath(rel_path)
        protected.add(pure.as_posix())
        protected.update(p.as_posix() for p in pure.parents if p.parts)
    return protected


def clean_candidates(node: RepoNode, git: GitSvn) -> tuple[list[str], list[str]]:
    """Split ``git clean``'s would-remove list for *node*.

    Returns:
        ``(removable, kept)`` repo-relative paths; ``kept`` are externals of
        *node* (or directories holding one) that git sees as untracked.

    Raises:
        CommandFailedError: The dry-run listing itself failed.
    """
    protected = _protected_paths(node)
    removable: list[str] = []
    kept: list[str] = []
    for rel_path in git.clean_dry_run(node.path):
        (kept if rel_path in protected else removable).append(rel_path)
    return removable, kept


def _remove(target: Path) -> None:
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    else:
        target.unlink(missing_ok=True)


def clean(root: RepoNode, git: GitSvn, *, dry_run: bool) -> list[Path]:
    """``git clean -dx`` every checkout in the tree without touching externals.

    Returns:
        The paths removed (or, with *dry_run*, that would be removed).
        Paths that failed to be removed are logged and left out.
    """
    cleaned: list[Path] = []
    for node in root.walk():
        removable, kept = clean_candidates(node, git)
        for rel_path in kept:
            print(f"Ignoring external at {str(Path(node.path) / rel_path)!r}")
        for rel_path in removable:
            target = Path(node.path) / rel_path
            if dry_run:
                print(f"Would remove {str(target)!r}")
                cleaned.append(target)
                continue
            try:
                _remove(target)
            except OSError as exc:
                logger.warning("cannot remove %s: %s", target, exc)
                continue
            cleaned.append(target)
    return cleaned


def fan_out(root: RepoNode, git: GitSvn, argv: Sequence[str]) -> list[CommandResult]:
    """Run ``git <argv>`` in every checkout of the tree.

    A non-zero exit is reported and the fan-out continues: paged or
    interactively-quit commands legitimately exit non-zero.

    Returns:
        The results of the commands that did not succeed.
    """
    failures: list[CommandResult] = []
    for path in root.collect_paths():
        print(f"Repo {path}:")
        result = git.passthrough(path, argv)
        if not result.success:
            logger.warning(
                "git returned error in %s: exit status %d", path, result.exit_code
            )
            failures.append(result)
    return failures
