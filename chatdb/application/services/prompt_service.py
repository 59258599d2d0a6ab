from dataclasses import dataclass
from typing import Dict, Tuple

from chatdb.domain.errors import ConfigurationError


@dataclass(frozen=True)
class SQLDialect:
    """Dialect-specific hints rendered into the system prompt"""
    name: str
    current_date: str
    date_trunc: str
    string_concat: str
    notes: Tuple[str, ...]


DIALECTS: Dict[str, SQLDialect] = {
    "postgresql": SQLDialect(
        name="PostgreSQL",
        current_date="CURRENT_DATE",
        date_trunc="date_trunc('period', column)",
        string_concat="||",
        notes=(
            "Use ILIKE for case-insensitive matching.",
            "INTERVAL syntax: INTERVAL '1 month'.",
            "Supports CTEs (WITH ... AS).",
        ),
    ),
    "mysql": SQLDialect(
        name="MySQL",
        current_date="CURDATE()",
        date_trunc="DATE_FORMAT(column, '%Y-%m-01')",
        string_concat="CONCAT(a, b)",
        notes=(
            "Use backticks for identifiers with special characters.",
            "LIKE is case-insensitive by default.",
            "INTERVAL syntax: INTERVAL 1 MONTH.",
            "Use IFNULL() instead of COALESCE() for two arguments.",
        ),
    ),
    "sqlite": SQLDialect(
        name="SQLite",
        current_date="date('now')",
        date_trunc="strftime('%Y-%m', column)",
        string_concat="||",
        notes=(
            "No native DATE type: dates are stored as TEXT or INTEGER.",
            "Use strftime() for date manipulation.",
            "No RIGHT JOIN or FULL OUTER JOIN.",
            "Use COALESCE() for null handling.",
        ),
    ),
}

POSTGRES_SCHEMA_FILTER_NOTE = (
    " Do NOT add WHERE table_schema = '...' to regular tables;"
    " only use table_schema when querying information_schema."
)


def build_system_prompt(dialect: str, schema_text: str, schema_name: str) -> str:
    """Render the instructions, dialect specifics and schema for the model"""
    d = DIALECTS.get(dialect)
    if d is None:
        raise ConfigurationError(f"Unsupported database dialect: {dialect}")
    schema_note = POSTGRES_SCHEMA_FILTER_NOTE if dialect == "postgresql" else ""
    notes = "\n".join(f"- {note}" for note in d.notes)

    return f"""You are a SQL assistant for {d.name}. Generate a SELECT query from the user's question.
The active schema is "{schema_name}". NEVER prefix table names with the schema. Query tables directly (SELECT * FROM my_table).{schema_note}
Rules: ONLY SELECT, include LIMIT 1000, respond with JSON only.
When using GROUP BY, ALWAYS include an aggregate function (COUNT, SUM, AVG, etc.) as the second column so charts can render.
Format: {{"sql":"SELECT ...","explanation":"brief","chartType":"bar|line|pie|table|number"}}
chartType: number=single value, line=time series, bar=categories with values, pie=proportions with counts, table=raw data.
Answer in the SAME LANGUAGE as the user.

{d.name} specifics:
- Current date: {d.current_date}
- Date truncation: {d.date_trunc}
- String concatenation: {d.string_concat}
{notes}

SCHEMA:
{schema_text}"""
