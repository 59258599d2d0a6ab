from chatdb.domain.entities import CHART_TYPES

# Single JSON object every backend must produce.
SQL_RESPONSE_PROPERTIES = {
    "sql": {"type": "string", "description": "The SQL SELECT query"},
    "explanation": {"type": "string", "description": "Brief explanation of the query results"},
    "chartType": {
        "type": "string",
        "enum": list(CHART_TYPES),
        "description": "Suggested chart type for visualization",
    },
}

SQL_RESPONSE_SCHEMA = {
    "name": "sql_response",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": SQL_RESPONSE_PROPERTIES,
        "required": ["sql", "explanation", "chartType"],
        "additionalProperties": False,
    },
}

SQL_RESPONSE_TOOL = {
    "name": "sql_response",
    "description": "Generate a SQL query response with explanation and chart type",
    "input_schema": {
        "type": "object",
        "properties": SQL_RESPONSE_PROPERTIES,
        "required": ["sql", "explanation", "chartType"],
    },
}

DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 256
