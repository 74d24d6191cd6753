"""Proportional +/- bars and the oversized-diff guard."""

from __future__ import annotations
from typing import Tuple

from .diff import CommitDiff

DIFFSTAT_WIDTH = 78

MAX_FILECOUNT = 1000
MAX_DELTAS = 1000
MAX_ADDCOUNT = 100000
MAX_DELCOUNT = 100000

TOO_LARGE_NOTICE = "Diff is too large, output suppressed.\n"


def scale_counts(add: int, dele: int, width: int = DIFFSTAT_WIDTH) -> Tuple[int, int]:
    """
    Number of '+' and '-' symbols to draw for a delta.

    Counts that fit in ``width`` are drawn as-is. Larger ones are scaled down,
    and every nonzero side keeps at least one symbol, so the result may
    exceed ``width`` by up to two.
    """
    changed = add + dele
    if changed <= width:
        return add, dele
    if add:
        add = width * add // changed + 1
    if dele:
        dele = width * dele // changed + 1
    return add, dele


def diffstat_bar(add: int, dele: int, width: int = DIFFSTAT_WIDTH) -> Tuple[str, str]:
    plus, minus = scale_counts(add, dele, width)
    return "+" * plus, "-" * minus


def diff_too_large(diff: CommitDiff) -> bool:
    return (
        diff.filecount > MAX_FILECOUNT
        or len(diff.deltas) > MAX_DELTAS
        or diff.addcount > MAX_ADDCOUNT
        or diff.delcount > MAX_DELCOUNT
    )
