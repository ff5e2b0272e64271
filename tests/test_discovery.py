"""Tests for gish.lib.discovery."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from conftest import FakeGitSvn, make_checkout

from gish.lib.discovery import discover_tree


class TestDiscoverTree:
    def test_builds_tree_in_listing_order(self, tmp_path: Path) -> None:
        git = FakeGitSvn(interactive=False)
        for rel in ("", "b", "a", "a/x", "a/y"):
            make_checkout(tmp_path / rel)
        git.urls[str(tmp_path)] = "svn://host/repo/trunk"
        git.listings[str(tmp_path)] = "# /\n/b svn://b\n/a svn://a\n"
        git.listings[str(tmp_path / "a")] = "# /\n/x svn://x\n/y ^/y\n"

        root = discover_tree(tmp_path, git, max_workers=4)

        assert root.collect_paths() == [
            str(tmp_path),
            str(tmp_path / "b"),
            str(tmp_path / "a"),
            str(tmp_path / "a" / "x"),
            str(tmp_path / "a" / "y"),
        ]
        assert root.url == "svn://host/repo/trunk"
        assert root.children[1].children[1].url == "svn://host/repo/y"
        assert all(node.root is root for node in root.walk())
        assert all(node.externals_known for node in root.walk())

    def test_unchecked_out_external_is_leaf(self, tmp_path: Path) -> None:
        git = FakeGitSvn(interactive=False)
        make_checkout(tmp_path)
        git.listings[str(tmp_path)] = "# /\n/absent svn://absent\n"

        root = discover_tree(tmp_path, git)

        absent = root.children[0]
        assert absent.url == "svn://absent"
        assert not absent.externals_known
        assert ("info", absent.path) not in git.calls

    def test_failure_is_logged_and_contained(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        git = FakeGitSvn(interactive=False)
        make_checkout(tmp_path)
        make_checkout(tmp_path / "bad")
        make_checkout(tmp_path / "good")
        git.listings[str(tmp_path)] = "# /\n/bad svn://bad\n/good svn://good\n"
        git.failures.add(("show-externals", str(tmp_path / "bad")))

        with caplog.at_level(logging.WARNING):
            root = discover_tree(tmp_path, git, max_workers=2)

        assert [c.externals_known for c in root.children] == [False, True]
        assert "cannot discover externals" in caplog.text

    def test_single_worker(self, tmp_path: Path) -> None:
        git = FakeGitSvn(interactive=False)
        make_checkout(tmp_path)
        make_checkout(tmp_path / "a")
        git.listings[str(tmp_path)] = "# /\n/a svn://a\n"
        root = discover_tree(tmp_path, git, max_workers=1)
        assert len(root.children) == 1

    def test_rejects_interactive_git(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="non-interactive"):
            discover_tree(tmp_path, FakeGitSvn())
