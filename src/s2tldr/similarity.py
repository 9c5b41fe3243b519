"""Character-level similarity used to decide whether two records describe the same work."""

from __future__ import annotations

SIMILARITY_THRESHOLD = 0.9


def lcs_length(a: str, b: str) -> int:
    """Length of the longest common subsequence of ``a`` and ``b``.

    Two rolling rows sized to the shorter string keep memory linear in
    ``min(len(a), len(b))``.
    """
    if len(b) > len(a):
        a, b = b, a
    if not b:
        return 0
    prev = [0] * (len(b) + 1)
    curr = [0] * (len(b) + 1)
    for ch in a:
        for j, other in enumerate(b, start=1):
            if ch == other:
                curr[j] = prev[j - 1] + 1
            else:
                curr[j] = max(prev[j], curr[j - 1])
        prev, curr = curr, prev
    return prev[len(b)]


def is_similar(a: str, b: str) -> bool:
    """Return True when ``a`` and ``b`` share enough characters to be the same text.

    Comparison is exact per character: no case folding or accent stripping.
    Two empty strings count as similar, an empty and a non-empty one never do.
    """
    return lcs_length(a, b) >= SIMILARITY_THRESHOLD * max(len(a), len(b))
