"""
Asset-class grouping for factor-lasso.

Candidate tickers are split into consecutive groups of fixed size and the
lambda search runs once per group, keeping the top factors of each class.
"""

from __future__ import annotations

from typing import List, Sequence, Union


def parse_tickers(tickers: Union[str, Sequence[str]]) -> List[str]:
    """
    Normalise a ticker list.

    Accepts a comma-separated string ("AGG,ARKF,BIL") or a sequence of
    strings. Whitespace is stripped and empty entries dropped.

    Raises
    ------
    ValueError
        If an entry is not a string or a ticker appears twice.
    """
    if isinstance(tickers, str):
        items = tickers.split(",")
    else:
        items = list(tickers)

    out = []
    for i, t in enumerate(items):
        if not isinstance(t, str):
            raise ValueError(f"tickers[{i}] must be str, got {type(t).__name__}")
        t = t.strip()
        if t:
            out.append(t)

    seen = set()
    dupes = []
    for t in out:
        if t in seen:
            dupes.append(t)
        seen.add(t)
    if dupes:
        raise ValueError(f"Duplicate tickers: {sorted(set(dupes))}")

    return out


def group_tickers(tickers: Sequence[str], group_size: int) -> List[List[str]]:
    """
    Split tickers into consecutive groups of group_size.

    The last group holds the remainder when len(tickers) is not a multiple
    of group_size.

    Examples
    --------
    >>> group_tickers(["A", "B", "C", "D", "E"], 2)
    [['A', 'B'], ['C', 'D'], ['E']]
    """
    if not isinstance(group_size, int) or group_size < 1:
        raise ValueError(f"group_size must be a positive int, got {group_size}")

    tickers = list(tickers)
    return [tickers[i:i + group_size] for i in range(0, len(tickers), group_size)]
