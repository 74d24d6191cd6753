"""Exception types raised while rendering a repository."""

from __future__ import annotations


class RenderError(Exception):
    """Base class for errors that abort or degrade a render run."""


class RepositoryError(RenderError):
    """The repository could not be opened or queried. Fatal."""


class CacheError(RenderError):
    """The log cache file exists but cannot be parsed. Fatal."""


class DiffError(RenderError):
    """A single commit's diff could not be built.

    Recoverable: the commit is left out of the log and no detail page is
    written for it, but the walk continues.
    """
