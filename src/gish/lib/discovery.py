"""Concurrent, read-only discovery of an externals tree.

Used for inventory (``gish list --discover``) only. Checkouts are
inspected in parallel, so it must never drive clone or clean, which rely
on strict parent-before-child ordering.

Completion is tracked with a counting protocol: every visited node posts
how many child visits it spawned, then posts its own result. The
coordinator starts expecting one result (the root), adds each spawned
count and subtracts each result; it is finished when nothing is pending.
A node posts its count before submitting its children, so the count can
never reach zero early.
"""

from __future__ import annotations

__all__ = ["discover_tree"]

import logging
import queue
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from gish.lib.errors import GishError
from gish.lib.externals import parse_externals
from gish.lib.git_svn import GitSvn, is_repo
from gish.lib.repo import RepoNode

logger = logging.getLogger(__name__)

_Message = tuple[str, int | RepoNode]


def _inspect(path: str, url: str | None, git: GitSvn) -> RepoNode:
    """Return a node for *path* with its direct externals as bare children."""
    node = RepoNode(path=path, url=url or "")
    if not is_repo(path):
        logger.info("%s is not checked out; externals unknown", path)
        return node
    info = git.info(path)
    if not node.url:
        node.url = info.url
    raw = git.show_externals(path)
    node.set_externals(parse_externals(raw, path, info.repository_root))
    return node


def discover_tree(
    root_path: str | Path, git: GitSvn, *, max_workers: int = 4
) -> RepoNode:
    """Build the externals tree below *root_path* by querying every checkout.

    Nodes that cannot be inspected are logged and kept with
    ``externals_known`` false.

    Args:
        root_path: Root checkout.
        git: A non-interactive :class:`GitSvn`; concurrent commands cannot
            share the terminal.
        max_workers: Upper bound on concurrent git-svn queries.
    """
    if git.interactive:
        raise ValueError("concurrent discovery requires a non-interactive GitSvn")

    messages: queue.Queue[_Message] = queue.Queue()
    futures: list[Future[None]] = []
    found: dict[str, RepoNode] = {}

    with ThreadPoolExecutor(max_workers=max_workers) as pool:

        def visit(path: str, url: str | None) -> None:
            node = RepoNode(path=path, url=url or "")
            try:
                node = _inspect(path, url, git)
            except (GishError, OSError) as exc:
                logger.warning("cannot discover externals of %s: %s", path, exc)
            finally:
                messages.put(("spawned", len(node.children)))
                for child in node.children:
                    futures.append(pool.submit(visit, child.path, child.url))
                messages.put(("done", node))

        futures.append(pool.submit(visit, str(root_path), None))
        pending = 1
        while pending:
            kind, payload = messages.get()
            if kind == "spawned":
                assert isinstance(payload, int)
                pending += payload
            else:
                assert isinstance(payload, RepoNode)
                found[payload.path] = payload
                pending -= 1

    for future in futures:
        future.result()

    def assemble(path: str) -> RepoNode:
        node = found[path]
        node.children = [assemble(child.path) for child in node.children]
        return node

    root = assemble(str(root_path))
    root.link_root()
    return root
