"""Persistence of the externals tree between runs.

The whole tree is stored as one JSON document under the root checkout's
``.git/info`` directory so later commands can skip querying svn for the
externals structure. Two older formats are still read:

- the un-versioned document written by earlier releases to
  ``.git/info/gish.conf`` (capitalized keys, children under ``Externals``);
- the raw ``git_svn_externals`` listing left in each checkout by the
  original shell tooling, which is migrated once and then deleted.
"""

from __future__ import annotations

__all__ = [
    "CACHE_REL_PATH",
    "CACHE_VERSION",
    "EARLIER_CACHE_REL_PATH",
    "LEGACY_CACHE_NAME",
    "CacheDocument",
    "ConfigStore",
    "RepoDocument",
]

import json
import logging
import os
import shutil
from pathlib import Path, PurePath
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from gish.lib.errors import ConfigCorruptError, ConfigNotFoundError, GishError
from gish.lib.externals import parse_externals
from gish.lib.git_svn import GitSvn
from gish.lib.repo import RepoNode

logger = logging.getLogger(__name__)

CACHE_VERSION = 1
CACHE_REL_PATH = Path(".git") / "info" / "gish.json"
EARLIER_CACHE_REL_PATH = Path(".git") / "info" / "gish.conf"
LEGACY_CACHE_NAME = "git_svn_externals"


class RepoDocument(BaseModel):
    """Serialized form of one :class:`RepoNode` (no root back-reference)."""

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(validation_alias=AliasChoices("path", "Path"))
    url: str = Field(default="", validation_alias=AliasChoices("url", "Url"))
    checkout_args: str = Field(
        default="",
        validation_alias=AliasChoices("checkoutArgs", "CheckoutArgs"),
        serialization_alias="checkoutArgs",
    )
    externals_known: bool = Field(
        default=False,
        validation_alias=AliasChoices("externalsKnown", "ExternalsKnown"),
        serialization_alias="externalsKnown",
    )
    children: list[RepoDocument] = Field(
        default_factory=list,
        validation_alias=AliasChoices("children", "Externals"),
    )

    @field_validator("children", mode="before")
    @classmethod
    def _coerce_null_children(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _check_externals(self) -> RepoDocument:
        if self.children and not self.externals_known:
            msg = f"{self.path} lists externals but they are not marked as known"
            raise ValueError(msg)
        owner = PurePath(self.path)
        for child in self.children:
            try:
                inside = PurePath(child.path).relative_to(owner)
            except ValueError:
                inside = PurePath()
            if not inside.parts or ".." in inside.parts:
                msg = f"external {child.path} is not inside {self.path}"
                raise ValueError(msg)
        return self

    @classmethod
    def from_node(cls, node: RepoNode) -> RepoDocument:
        """Build the document for *node* and its subtree."""
        return cls(
            path=node.path,
            url=node.url,
            checkout_args=node.checkout_args,
            externals_known=node.externals_known,
            children=[cls.from_node(child) for child in node.children],
        )

    def to_node(self) -> RepoNode:
        """Rebuild the subtree; root references are left for ``link_root``."""
        return RepoNode(
            path=self.path,
            url=self.url,
            checkout_args=self.checkout_args,
            externals_known=self.externals_known,
            children=[child.to_node() for child in self.children],
        )


class CacheDocument(BaseModel):
    """Top-level cache file: format version plus the tree."""

    version: int = CACHE_VERSION
    root: RepoDocument


def _read_document(cache_file: Path) -> RepoNode:
    """Parse *cache_file* in the current or un-versioned format."""
    try:
        data = json.loads(cache_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigCorruptError(f"cannot read config {cache_file}: {exc}") from exc

    try:
        if isinstance(data, dict) and "version" in data:
            document = CacheDocument.model_validate(data)
            if document.version > CACHE_VERSION:
                msg = (
                    f"config {cache_file} has version {document.version}; "
                    f"this gish understands up to {CACHE_VERSION}"
                )
                raise ConfigCorruptError(msg)
            tree = document.root
        else:
            tree = RepoDocument.model_validate(data)
    except ValidationError as exc:
        raise ConfigCorruptError(f"invalid config {cache_file}: {exc}") from exc
    return tree.to_node()


class ConfigStore:
    """Save and load externals trees.

    Args:
        git: git-svn boundary, needed to migrate legacy caches.
        alternate: Optional donor location (a directory laid out like the
            checkout, or a legacy cache file) consulted only when a
            checkout has no cache of its own.
    """

    def __init__(self, git: GitSvn, *, alternate: Path | None = None) -> None:
        self.git = git
        self.alternate = alternate

    @staticmethod
    def cache_path(repo_path: str | Path) -> Path:
        """Return the cache file location for the checkout at *repo_path*."""
        return Path(repo_path) / CACHE_REL_PATH

    def save(self, root: RepoNode) -> Path:
        """Write the whole tree anchored at *root*.

        Raises:
            ValueError: If *root* is not the root of its tree; callers
                holding an inner node must pass ``node.root``.
        """
        if not root.is_root:
            msg = f"only a tree root can be saved, got {root.path}"
            raise ValueError(msg)
        target = self.cache_path(root.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        document = CacheDocument(root=RepoDocument.from_node(root))
        target.write_text(
            document.model_dump_json(by_alias=True, indent=2) + "\n",
            encoding="utf-8",
        )
        logger.debug("saved externals tree to %s", target)
        return target

    def load(self, location: str | Path, *, use_alternate: bool = True) -> RepoNode:
        """Load a tree from a checkout directory or a cache file path.

        A directory is searched for the current cache, then the file
        written by earlier releases, then a legacy listing. When
        *use_alternate* is false the alternate location is never copied
        into *location*, which leaves a donor checkout untouched.

        Raises:
            ConfigNotFoundError: Nothing cached at *location*.
            ConfigCorruptError: A structured cache exists but is unreadable
                or describes an invalid tree.
        """
        location = Path(location)
        if location.is_dir():
            candidates = [location / CACHE_REL_PATH, location / EARLIER_CACHE_REL_PATH]
        else:
            candidates = [location]

        for cache_file in candidates:
            if cache_file.is_file():
                root = _read_document(cache_file)
                root.link_root()
                return root

        if location.is_dir():
            legacy = location / LEGACY_CACHE_NAME
            if legacy.is_file() or (use_alternate and self.adopt_alternate(location)):
                logger.info("converting old externals cache in %s", location)
                root = RepoNode(path=str(location))
                root.link_root()
                self.migrate_legacy(root)
                return root

        raise ConfigNotFoundError(f"No config found in {location}")

    def adopt_alternate(self, directory: str | Path, relative: str = ".") -> bool:
        """Copy a legacy cache from the alternate location into *directory*.

        *relative* is *directory*'s path below the tree root, used to find
        the matching cache inside an alternate checkout layout. Nothing is
        copied when *directory* already holds a cache.
        """
        if self.alternate is None:
            return False
        directory = Path(directory)
        primary = (
            self.cache_path(directory),
            directory / EARLIER_CACHE_REL_PATH,
            directory / LEGACY_CACHE_NAME,
        )
        if any(p.exists() for p in primary):
            return False

        if self.alternate.is_file() and relative == ".":
            source = self.alternate
        else:
            source = self.alternate / relative / LEGACY_CACHE_NAME
        if not source.is_file():
            return False

        shutil.copyfile(source, directory / LEGACY_CACHE_NAME)
        logger.info("seeded externals cache for %s from %s", directory, source)
        return True

    def migrate_legacy(self, node: RepoNode, *, recursive: bool = True) -> None:
        """Convert the legacy cache in *node*'s checkout into *node*.

        Children found in the listing are migrated the same way when
        *recursive*; their failures are logged and do not stop the
        migration. The legacy file is deleted once *node* itself has been
        converted, even if a child failed.

        Raises:
            ConfigNotFoundError: *node*'s checkout has no legacy cache.
            GishError: *node*'s own listing could not be converted.
        """
        legacy = Path(node.path) / LEGACY_CACHE_NAME
        if not legacy.is_file():
            raise ConfigNotFoundError(f"No old externals cache in {node.path}")

        raw = legacy.read_text(encoding="utf-8")
        info = self.git.info(node.path)
        node.url = info.url
        node.set_externals(parse_externals(raw, node.path, info.repository_root))

        if recursive:
            for child in node.children:
                try:
                    self.migrate_legacy(child)
                except ConfigNotFoundError as exc:
                    logger.info("%s", exc)
                except (GishError, OSError) as exc:
                    logger.warning(
                        "Error converting old cache in %s: %s", child.path, exc
                    )

        try:
            os.remove(legacy)
        except OSError as exc:
            logger.warning("Error deleting old cache %s: %s", legacy, exc)
