"""
Label similarity.

Normalized Levenshtein similarity used to compare set names against the
provider's console names. Comparison is exact on characters; callers
normalize case and punctuation first (see normalize_label).
"""

import re

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_label(text: str) -> str:
    """
    Lower-case, replace punctuation with spaces and collapse whitespace.

    Example: "1992 SkyBox Marvel Masterpieces: What If..." ->
             "1992 skybox marvel masterpieces what if"
    """
    cleaned = _NON_WORD.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def edit_distance(first: str, second: str) -> int:
    """
    Minimum single-character insertions, deletions and substitutions
    turning first into second.
    """
    if not first:
        return len(second)
    if not second:
        return len(first)

    # Two rolling rows of the (len(first)+1) x (len(second)+1) table
    previous = list(range(len(second) + 1))
    for i, first_char in enumerate(first, start=1):
        current = [i] + [0] * len(second)
        for j, second_char in enumerate(second, start=1):
            cost = 0 if first_char == second_char else 1
            current[j] = min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous = current

    return previous[-1]


def similarity(first: str, second: str) -> float:
    """
    Similarity in [0.0, 1.0]: (max_len - edit_distance) / max_len.

    Two empty strings are identical (1.0).
    """
    max_len = max(len(first), len(second))
    if max_len == 0:
        return 1.0
    return (max_len - edit_distance(first, second)) / max_len
