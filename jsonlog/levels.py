"""Severity words and RFC 5424 ranks, and conversions between them."""

from jsonlog.errors import InvalidLevel

# Index is the rank: 0 is most severe.
LEVELS = (
    "emergency",
    "alert",
    "critical",
    "error",
    "warning",
    "notice",
    "info",
    "debug",
)

LEVEL_RANKS = {word: rank for rank, word in enumerate(LEVELS)}


def to_rank(level) -> int:
    """Return the rank of a level word, an int rank or a stringed rank.

    Words are matched case-insensitively and ignoring surrounding whitespace.
    Raises InvalidLevel for anything else.
    """
    if isinstance(level, bool):
        raise InvalidLevel(level)
    if isinstance(level, int):
        if 0 <= level < len(LEVELS):
            return level
        raise InvalidLevel(level)
    if not isinstance(level, str):
        raise InvalidLevel(level)

    normalized = level.strip().lower()
    if normalized in LEVEL_RANKS:
        return LEVEL_RANKS[normalized]
    if len(normalized) == 1 and normalized.isdigit() and int(normalized) < len(LEVELS):
        return int(normalized)
    raise InvalidLevel(level)


def to_word(level) -> str:
    """Return the canonical level word; inverse of to_rank()."""
    return LEVELS[to_rank(level)]


def is_valid(level) -> bool:
    try:
        to_rank(level)
    except InvalidLevel:
        return False
    return True
