"""CLI entry point: resolve the externals tree, run a command over it."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from urllib.parse import urlparse

from gish.lib.cache import ConfigStore
from gish.lib.config import DEFAULT_CHECKOUT_ARGS, Config
from gish.lib.discovery import discover_tree
from gish.lib.errors import ConfigNotFoundError, GishError
from gish.lib.git_svn import GitSvn, find_root_repo_path
from gish.lib.ignores import ignore_all_externals
from gish.lib.operations import Synchronizer, clean, fan_out, fetch_externals
from gish.lib.repo import RepoNode

COMMANDS = frozenset({"clone", "list", "clean", "updateignores"})

# Global options that consume the following argument.
_VALUE_OPTIONS = frozenset({"--alt-cache"})


def _global_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gish",
        description=(
            "Recursively perform commands on a git-svn repo and its externals."
        ),
        epilog=(
            "Other commands are passed directly to git along with their "
            "arguments, once per repo. Use 'gish <command> -h' for "
            "command-specific help."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Enable verbose output.",
    )
    parser.add_argument(
        "--alt-cache",
        type=Path,
        default=None,
        help=(
            "Directory (or git_svn_externals file) holding known-good "
            "externals caches, used when a checkout has none of its own."
        ),
    )
    return parser


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the gish subcommands."""
    parser = _global_parser()
    subparsers = parser.add_subparsers(dest="command", required=True)

    clone_parser = subparsers.add_parser(
        "clone",
        help="clone (or update) the repo and its externals.",
        description=(
            "Standard usage is 'gish clone <svnUrl> [destDir]'. If a path to "
            "a gish config file (or repo containing one) is given with -c, "
            "the url, externals and checkout args come from that config and "
            "destDir is required. The default clone arguments are "
            f"'{DEFAULT_CHECKOUT_ARGS}'."
        ),
    )
    clone_parser.add_argument(
        "-c",
        "--config",
        dest="alt_config",
        type=Path,
        default=None,
        help="Path to config file to use instead of querying svn.",
    )
    clone_parser.add_argument(
        "-i",
        dest="prompt_checkout_args",
        action="store_true",
        help="Interactively prompt for clone arguments.",
    )
    clone_parser.add_argument("targets", nargs="*", metavar="svnUrl|destDir")

    list_parser = subparsers.add_parser(
        "list",
        help="list the root path of the current repo and the paths to its externals.",
    )
    list_parser.add_argument(
        "--discover",
        action="store_true",
        help="Query every checkout concurrently instead of reading the cache.",
    )

    clean_parser = subparsers.add_parser(
        "clean", help="perform git clean without removing externals."
    )
    clean_parser.add_argument(
        "-n",
        dest="dry_run",
        action="store_true",
        help="List the files that would be removed.",
    )
    clean_parser.add_argument(
        "-f",
        dest="force",
        action="store_true",
        help="Enable file removal. Like git, -n or -f is required for clean.",
    )

    subparsers.add_parser(
        "updateignores",
        help="add externals to git ignore. Done automatically with clone.",
    )
    return parser


def split_passthrough(argv: list[str]) -> tuple[list[str], list[str]] | None:
    """Split ``argv`` into global options and a git passthrough command.

    Returns ``None`` when the first command word is a gish subcommand (or
    there is none).
    """
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg in _VALUE_OPTIONS:
            i += 2
            continue
        if not arg.startswith("-"):
            if arg in COMMANDS:
                return None
            return argv[:i], argv[i:]
        i += 1
    return None


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


def _clone_root(
    args: argparse.Namespace, parser: argparse.ArgumentParser, store: ConfigStore
) -> RepoNode:
    targets: list[str] = args.targets
    if args.alt_config is None:
        if not targets:
            parser.error("Not enough arguments to 'gish clone'. SVN URL required")
        if len(targets) > 2:
            parser.error("Too many arguments.")
        url = targets[0].strip()
        if len(targets) == 2:
            dest = targets[1]
        else:
            dest = urlparse(url).path.rstrip("/").rsplit("/", 1)[-1]
        if not dest:
            parser.error(f"cannot derive a destination dir from {url!r}")
        root = RepoNode(path=os.path.abspath(dest), url=url)
    else:
        if not targets:
            parser.error(
                "Not enough arguments to 'gish clone'. Destination dir required"
            )
        if len(targets) > 1:
            parser.error("Too many arguments.")
        dest = os.path.abspath(targets[0])
        try:
            root = store.load(args.alt_config, use_alternate=False)
        except GishError as exc:
            raise GishError(f"Provided alternate config is invalid: {exc}") from exc
        root.rewrite_paths(root.path, dest)
    root.link_root()
    return root


def _resolve_tree(git: GitSvn, store: ConfigStore) -> RepoNode:
    """Load the tree for the repo containing the cwd, or query svn for it."""
    root_path = find_root_repo_path(Path.cwd())
    try:
        root = store.load(root_path)
    except ConfigNotFoundError:
        print("Loading info from git. This may take a while.")
        root = RepoNode(path=str(root_path), url=git.info(root_path).url)
        root.link_root()
        fetch_externals(root, git)
        return root
    # The checkout may have moved since the cache was written.
    root.rewrite_paths(root.path, str(root_path))
    return root


def _save_tree(store: ConfigStore, root: RepoNode) -> None:
    try:
        store.save(root)
    except OSError as exc:
        print(f"Error writing config: {exc}", file=sys.stderr)


def _run(argv: list[str]) -> None:
    passthrough = split_passthrough(argv)
    if passthrough is not None:
        leading, git_args = passthrough
        parser = _global_parser()
        args = parser.parse_args(leading)
        command = None
    else:
        parser = build_parser()
        args = parser.parse_args(argv)
        command = args.command
        git_args = []

    try:
        config = Config.from_env(
            overrides={
                "verbose": args.verbose,
                "alternate_cache": args.alt_cache,
                "prompt_checkout_args": getattr(args, "prompt_checkout_args", None),
            }
        )
    except ValueError as exc:
        raise GishError(f"invalid configuration: {exc}") from exc
    _configure_logging(config.verbose)
    git = GitSvn()
    store = ConfigStore(git, alternate=config.alternate_cache)

    if command == "clone":
        root = _clone_root(args, parser, store)
        Synchronizer(git, store, config).run(root)
        _save_tree(store, root)
        return

    if command == "list" and args.discover:
        root = discover_tree(
            find_root_repo_path(Path.cwd()),
            GitSvn(interactive=False),
            max_workers=config.discover_jobs,
        )
        for path in root.collect_paths():
            print(path)
        return

    if command == "clean" and not (args.dry_run or args.force):
        parser.error("-n or -f required for clean.")

    root = _resolve_tree(git, store)
    if command == "list":
        for path in root.collect_paths():
            print(path)
    elif command == "clean":
        clean(root, git, dry_run=args.dry_run)
    elif command == "updateignores":
        ignore_all_externals(root)
    else:
        fan_out(root, git, git_args)
    _save_tree(store, root)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the CLI."""
    try:
        _run(list(sys.argv[1:] if argv is None else argv))
    except GishError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
