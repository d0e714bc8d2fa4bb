"""String distance helpers used for fuzzy counterparty matching"""

from typing import List


def levenshtein_distance(a: str, b: str) -> int:
    """
    Classic dynamic-programming edit distance (insert, delete, substitute = 1).

    Keeps only two rows of the matrix in memory.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous: List[int] = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(
                    min(
                        previous[j - 1] + 1,  # substitution
                        current[j - 1] + 1,  # insertion
                        previous[j] + 1,  # deletion
                    )
                )
        previous = current

    return previous[-1]


def within_edit_distance(a: str, b: str, max_distance: int) -> bool:
    """True when the edit distance between a and b is at most max_distance"""
    # Length difference is a lower bound on the distance
    if abs(len(a) - len(b)) > max_distance:
        return False
    return levenshtein_distance(a, b) <= max_distance
