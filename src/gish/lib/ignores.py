"""Keep externals out of their parent's untracked-file view.

Each checkout's local, uncommitted ``.git/info/exclude`` gets one line per
direct external (relative to that checkout). Lines already present are
left alone.
"""

from __future__ import annotations

__all__ = ["IGNORE_REL_PATH", "ignore_all_externals", "ignore_externals"]

import logging
from pathlib import Path

from gish.lib.git_svn import is_repo
from gish.lib.repo import RepoNode

logger = logging.getLogger(__name__)

IGNORE_REL_PATH = Path(".git") / "info" / "exclude"


def ignore_externals(node: RepoNode) -> list[str]:
    """Add *node*'s direct externals to its exclude file.

    Returns:
        The lines that were appended. Write failures are logged and yield
        an empty list.
    """
    if not node.children:
        return []

    ignore_file = Path(node.path) / IGNORE_REL_PATH
    try:
        content = ignore_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        content = ""
    except OSError as exc:
        logger.warning("cannot read %s: %s", ignore_file, exc)
        return []

    existing = set(content.splitlines())
    to_add: list[str] = []
    for rel_path in node.relative_child_paths():
        if rel_path not in existing and rel_path not in to_add:
            to_add.append(rel_path)
    if not to_add:
        return []

    try:
        ignore_file.parent.mkdir(parents=True, exist_ok=True)
        with ignore_file.open("a", encoding="utf-8") as fh:
            if content and not content.endswith("\n"):
                fh.write("\n")
            fh.writelines(f"{rel_path}\n" for rel_path in to_add)
    except OSError as exc:
        logger.warning("cannot update %s: %s", ignore_file, exc)
        return []
    return to_add


def ignore_all_externals(root: RepoNode) -> None:
    """Run :func:`ignore_externals` on every checked-out node of the tree."""
    for node in root.walk():
        if is_repo(node.path):
            ignore_externals(node)
