"""gish: recursively operate on a git-svn checkout and its svn externals."""

__version__ = "0.1.0"
