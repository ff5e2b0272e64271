"""In-memory model of a checkout and its (recursively nested) externals."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import PurePath

from gish.lib.errors import ExternalPathError
from gish.lib.externals import ExternalEntry

__all__ = ["RepoNode"]


@dataclass
class RepoNode:
    """One repository in the externals tree.

    ``root`` points at the tree's root node (the root points at itself).
    It is a non-owning back-reference: it is excluded from comparison and
    repr, and it is never serialized; :meth:`link_root` rebuilds it.
    """

    path: str
    url: str = ""
    checkout_args: str = ""
    externals_known: bool = False
    children: list[RepoNode] = field(default_factory=list)
    root: RepoNode | None = field(default=None, repr=False, compare=False)

    @property
    def is_root(self) -> bool:
        """Return whether this node is the root of its tree."""
        return self.root is self

    def walk(self) -> Iterator[RepoNode]:
        """Yield this node and its descendants, depth first, parents first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def collect_paths(self) -> list[str]:
        """Return the path of every node in canonical traversal order."""
        return [node.path for node in self.walk()]

    def link_root(self) -> None:
        """Make this node the root of every node in its subtree."""
        for node in self.walk():
            node.root = self

    def rewrite_paths(self, old: str, new: str) -> None:
        """Replace the first occurrence of *old* with *new* in every path.

        Used when a tree cached at one location is materialized at another.
        Repeating the call with the same arguments is a no-op once *old* no
        longer occurs in the paths.
        """
        for node in self.walk():
            node.path = node.path.replace(old, new, 1)

    def set_externals(self, entries: Iterable[ExternalEntry]) -> None:
        """Replace this node's children with freshly discovered externals.

        Raises:
            ExternalPathError: If an entry does not lie strictly inside this
                node's path. The node is left unchanged.
        """
        owner = PurePath(self.path)
        children: list[RepoNode] = []
        for entry in entries:
            try:
                inside = PurePath(entry.path).relative_to(owner)
            except ValueError as exc:
                msg = f"external {entry.path} ({entry.url}) is outside {self.path}"
                raise ExternalPathError(msg) from exc
            if not inside.parts:
                msg = f"external {entry.url} would replace {self.path} itself"
                raise ExternalPathError(msg)
            children.append(RepoNode(path=entry.path, url=entry.url, root=self.root))
        self.children = children
        self.externals_known = True

    def relative_child_paths(self) -> list[str]:
        """Return the direct children's paths relative to this node."""
        return [os.path.relpath(child.path, self.path) for child in self.children]
