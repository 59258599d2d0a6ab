"""
Lexical safety guard for generated SQL.

This is a last line of defense layered beneath least-privilege database
credentials: it restricts statements to a single read query and bounds the
row count, without parsing the SQL.
"""
import re
from dataclasses import dataclass
from typing import Optional

BLOCKED_KEYWORDS = (
    "INSERT", "UPDATE", "DELETE", "DROP", "ALTER", "TRUNCATE",
    "CREATE", "GRANT", "REVOKE", "EXEC", "EXECUTE", "COPY",
)

_READ_STATEMENT = re.compile(r"^(SELECT|WITH)\s", re.IGNORECASE)
_STRING_LITERAL = re.compile(r"'[^']*'")
_KEYWORD_PATTERNS = [(kw, re.compile(rf"\b{kw}\b")) for kw in BLOCKED_KEYWORDS]
_LIMIT_CLAUSE = re.compile(r"\bLIMIT\s+\d+", re.IGNORECASE)
_TRAILING_SEMICOLON = re.compile(r";$")


@dataclass(frozen=True)
class GuardResult:
    valid: bool
    error: Optional[str] = None


def validate_sql(sql: str, allow_writes: bool = False) -> GuardResult:
    """
    Check that ``sql`` is a single read-only statement.

    Checks run in order: statement shape, multiple statements, blocked
    keywords. Single-quoted literals are blanked out before the last two so
    their content cannot trigger a rejection.
    """
    if allow_writes:
        return GuardResult(valid=True)

    trimmed = sql.strip()

    if not _READ_STATEMENT.match(trimmed):
        return GuardResult(valid=False, error="Only SELECT queries are allowed.")

    without_strings = _STRING_LITERAL.sub("''", trimmed)
    semicolon = without_strings.find(";")
    if semicolon != -1 and semicolon < len(without_strings) - 1:
        return GuardResult(valid=False, error="Multiple statements are not allowed.")

    upper = without_strings.upper()
    for keyword, pattern in _KEYWORD_PATTERNS:
        if pattern.search(upper):
            return GuardResult(valid=False, error=f"{keyword} operations are not allowed.")

    return GuardResult(valid=True)


def ensure_limit(sql: str, max_rows: int = 1000) -> str:
    """Append ``LIMIT max_rows`` unless a numeric LIMIT is already present"""
    trimmed = _TRAILING_SEMICOLON.sub("", sql.strip()).rstrip()
    if not _LIMIT_CLAUSE.search(trimmed):
        return f"{trimmed} LIMIT {max_rows}"
    return trimmed
