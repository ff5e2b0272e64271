"""svn:externals reference resolution and listing parsing.

``git svn show-externals`` prints the externals of a checkout grouped
under comment headers naming the directory that declares them::

    # /trunk/vendor/
    /trunk/vendor/libA svn://host/libs/a
    /trunk/vendor/libB ^/libs/b

Declaration lines may repeat the header path as a prefix or omit it.
Only the single-line ``path url`` declaration form is understood.
"""

from __future__ import annotations

__all__ = [
    "ExternalEntry",
    "ScanState",
    "parse_externals",
    "resolve_reference",
]

import posixpath
import re
from enum import Enum
from typing import NamedTuple

from gish.lib.errors import ParseError, ResolutionError

# Relative reference prefixes introduced in svn 1.5, longest first so that
# "//" is not mistaken for a bare "/".
_REPOSITORY_ROOT = "^/"
_UNSUPPORTED_KINDS = (
    ("../", "directory-relative"),
    ("//", "scheme-relative"),
    ("/", "server-root-relative"),
)

_HEADER_PATTERN = re.compile(r"^#\s(.*)")
# Exactly two whitespace-free fields; indented lines are not declarations.
_ENTRY_PATTERN = re.compile(r"^(\S+)\s+(\S+)\s*$")


class ExternalEntry(NamedTuple):
    """One declared external: where it lives locally and where it comes from."""

    path: str
    url: str


class ScanState(Enum):
    """States of the externals listing scanner."""

    EXPECT_HEADER = "expect-header"
    EXPECT_ENTRY = "expect-entry"


def resolve_reference(repository_root_url: str, raw_ref: str) -> str:
    """Resolve an externals URL field to an absolute URL.

    Only repository-root references (``^/``) can be resolved; the other
    relative kinds need the URL of the declaring directory or server.

    Raises:
        ResolutionError: If *raw_ref* uses an unsupported relative kind.
    """
    if raw_ref.startswith(_REPOSITORY_ROOT):
        return repository_root_url + "/" + raw_ref[len(_REPOSITORY_ROOT) :]
    for prefix, kind in _UNSUPPORTED_KINDS:
        if raw_ref.startswith(prefix):
            raise ResolutionError(raw_ref, kind)
    return raw_ref


def _strip_base(target: str, base: str) -> str:
    if base and target.startswith(base):
        return target[len(base) :]
    if base and target.rstrip("/") == base.rstrip("/"):
        return ""
    return target


def _join(owner_path: str, base: str, suffix: str) -> str:
    parts = [part.strip("/") for part in (base, suffix)]
    return posixpath.normpath(posixpath.join(owner_path, *[p for p in parts if p]))


def parse_externals(
    raw_listing: str, owner_path: str, repository_root_url: str
) -> list[ExternalEntry]:
    """Turn a raw externals listing into entries, in listing order.

    Lines that are neither headers nor declarations are skipped. A header
    opens a group; a line inside a group that is not a declaration closes
    it.

    Args:
        raw_listing: Output of ``git svn show-externals`` (or a legacy cache).
        owner_path: Absolute path of the checkout that declares the externals.
        repository_root_url: Repository root URL used to resolve ``^/`` refs.

    Raises:
        ParseError: If any declaration's URL cannot be resolved. No partial
            result is returned.
    """
    entries: list[ExternalEntry] = []
    state = ScanState.EXPECT_HEADER
    base = ""

    for line in raw_listing.splitlines():
        header = _HEADER_PATTERN.match(line)
        if header is not None:
            base = header.group(1).strip()
            state = ScanState.EXPECT_ENTRY
            continue

        if state is ScanState.EXPECT_HEADER:
            continue

        match = _ENTRY_PATTERN.match(line)
        if match is None:
            state = ScanState.EXPECT_HEADER
            continue

        target, raw_ref = match.groups()
        suffix = _strip_base(target, base)
        try:
            url = resolve_reference(repository_root_url, raw_ref)
        except ResolutionError as exc:
            raise ParseError(f"error with external {line.strip()!r}: {exc}") from exc
        entries.append(ExternalEntry(_join(owner_path, base, suffix), url))

    return entries
