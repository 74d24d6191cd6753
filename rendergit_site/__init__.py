"""
Render a git repository as a tree of static HTML documents: a commit log,
one diff page per commit, a file browser, a reference list and Atom feeds.

Re-runs are incremental when a log cache is used: only commits newer than the
previous run's HEAD are walked, and commit pages already on disk are never
rewritten.
"""

__version__ = "0.3.0"
