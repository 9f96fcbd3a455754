"""
Snowflake ID helpers.

Snowflakes grow with creation time, so "older" means "smaller". IDs arrive
as strings from the API and are compared without ever raising: numerically
when both parse, otherwise by length and then lexicographically.
"""

_UINT64_MAX = 2 ** 64 - 1


def _parse(value: str):
    if not (value.isascii() and value.isdigit()):
        return None
    number = int(value)
    if number > _UINT64_MAX:
        return None
    return number


def older_snowflake(current_oldest: str, candidate: str) -> str:
    """Return whichever of the two IDs is older.

    An empty ``current_oldest`` means no bound yet and is always replaced by
    a non-empty candidate. An empty candidate never wins.
    """
    if not candidate:
        return current_oldest
    if not current_oldest:
        return candidate

    cur = _parse(current_oldest)
    cand = _parse(candidate)
    if cur is not None and cand is not None:
        return candidate if cand < cur else current_oldest

    if len(candidate) != len(current_oldest):
        return candidate if len(candidate) < len(current_oldest) else current_oldest
    return candidate if candidate < current_oldest else current_oldest


def previous_snowflake(snowflake: str) -> str:
    """Return the ID just before ``snowflake``, or the ID itself if it is
    zero or not numeric."""
    number = _parse(snowflake)
    if not number:
        return snowflake
    return str(number - 1)
