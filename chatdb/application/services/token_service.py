import math
from typing import Tuple

CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "\n... (schema truncated to fit context)"


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 chars per token"""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_schema(schema: str, max_tokens: int) -> Tuple[str, bool]:
    """
    Truncate schema text to fit within a token budget.

    Cuts at the last full line that fits (marker included) and appends a
    marker line. When no newline falls inside the budget nothing of the
    schema is kept, only the marker, even if the marker alone exceeds
    the budget.
    """
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(schema) <= max_chars:
        return schema, False

    room = max_chars - len(TRUNCATION_MARKER)
    if room <= 0:
        return TRUNCATION_MARKER, True

    kept = schema[:room]
    last_newline = max(kept.rfind("\n"), 0)
    return kept[:last_newline] + TRUNCATION_MARKER, True
