import json
import re
from datetime import datetime, date
from typing import List, Dict, Any

_UNSAFE_SCHEMA_CHARS = re.compile(r"[^a-zA-Z0-9_\-]")


def sanitize_schema_name(schema: str) -> str:
    """Strip everything outside ``[A-Za-z0-9_-]`` before interpolation"""
    return _UNSAFE_SCHEMA_CHARS.sub("", schema)


def serialize_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert special types to JSON-serializable format"""
    for row in rows:
        for key, value in row.items():
            if isinstance(value, (datetime, date)):
                row[key] = value.isoformat()
            elif isinstance(value, (bytes, bytearray, memoryview)):
                row[key] = bytes(value).hex()
            elif value is not None:
                try:
                    json.dumps({key: value})
                except TypeError:
                    row[key] = str(value)
    return rows
