from typing import Dict, List, Optional, TYPE_CHECKING

from .entities import TableColumnInfo

if TYPE_CHECKING:
    from .interfaces import IDatabaseAdapter


def render_schema_text(columns: List[TableColumnInfo]) -> str:
    """
    Compact schema format for LLM consumption, one table per line:
    ``users(id bigint, name varchar)``. Tables keep first-seen order.
    """
    tables: Dict[str, List[TableColumnInfo]] = {}
    for col in columns:
        tables.setdefault(col.table_name, []).append(col)

    lines = []
    for table, cols in tables.items():
        col_str = ", ".join(f"{c.column_name} {c.data_type}" for c in cols)
        lines.append(f"{table}({col_str})")
    return "\n".join(lines)


async def build_schema_text(adapter: "IDatabaseAdapter", schema: Optional[str] = None) -> str:
    """Fetch columns through ``adapter`` and render them"""
    columns = await adapter.get_columns(schema or adapter.default_schema)
    return render_schema_text(columns)
