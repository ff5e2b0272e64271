"""Core library: externals parsing, tree model, cache, and tree operations.

Primary modules:
- ``gish.lib.externals`` for reference resolution and listing parsing.
- ``gish.lib.repo`` for the in-memory externals tree.
- ``gish.lib.cache`` for persisting the tree between runs.
- ``gish.lib.operations`` for recursive clone/update, clean, and fan-out.
"""
