"""
Core utilities for structured output construction
"""  # noqa: D200, D212, D415

TRUNCATION_MARKER = "... [TRUNCATED]"


def truncate_preview(text: str | None, limit: int) -> str:
    """Bound `text` to `limit` characters, marking any cut"""  # noqa: D415
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def coerce_positive_int(value: int | None, default: int) -> int:
    """Return `value` when it is a positive int, otherwise `default`"""  # noqa: D415
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return default
