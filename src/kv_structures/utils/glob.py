"""Glob matching for key patterns and pub/sub channels.

Supports ``*`` (any run of characters, including none) and ``?`` (exactly one character).
Matching is anchored at both ends of the string.
"""

WILDCARD_CHARACTERS: frozenset[str] = frozenset({"*", "?"})


def has_wildcard(pattern: str) -> bool:
    """Whether the pattern contains a wildcard character."""
    return any(char in WILDCARD_CHARACTERS for char in pattern)


def glob_match(pattern: str, string: str) -> bool:
    """Check whether `string` matches the glob `pattern`.

    Greedy two-pointer walk that backtracks to the most recent ``*`` on a mismatch, so the
    worst case is O(len(pattern) * len(string)).

    Args:
        pattern: The glob pattern.
        string: The string to test.

    Returns:
        True if the whole string matches the pattern.
    """
    pattern_index: int = 0
    string_index: int = 0
    star_index: int = -1
    star_match: int = -1

    while string_index < len(string):
        if pattern_index < len(pattern) and pattern[pattern_index] in ("?", string[string_index]):
            pattern_index += 1
            string_index += 1
        elif pattern_index < len(pattern) and pattern[pattern_index] == "*":
            star_index = pattern_index
            star_match = string_index
            pattern_index += 1
        elif star_index != -1:
            pattern_index = star_index + 1
            star_match += 1
            string_index = star_match
        else:
            return False

    while pattern_index < len(pattern) and pattern[pattern_index] == "*":
        pattern_index += 1

    return pattern_index == len(pattern)
