from typing import Optional


class ChatDBError(Exception):
    """Base error for every failure surfaced by the query pipeline"""

    def __init__(self, message: str, code: str = "CHATDB_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigurationError(ChatDBError):
    """Unrecognized dialect/provider signal or missing credentials"""

    def __init__(self, message: str):
        super().__init__(message, "CONFIG_ERROR")


class ValidationError(ChatDBError):
    """Generated SQL rejected by the safety guard"""

    def __init__(self, message: str, sql: str):
        super().__init__(message, "VALIDATION_ERROR")
        self.sql = sql


class ResponseParseError(ChatDBError):
    """Model output that is not valid JSON or lacks required fields"""

    def __init__(self, message: str, content: str = ""):
        super().__init__(message, "PARSE_ERROR")
        self.content = content


class LLMError(ChatDBError):
    """Transport, non-2xx or empty-content failure from a model backend"""

    def __init__(self, message: str, provider: str, status_code: Optional[int] = None):
        super().__init__(message, "LLM_ERROR")
        self.provider = provider
        self.status_code = status_code


ProviderError = LLMError


class ContextOverflowError(LLMError):
    """The conversation no longer fits the model's context window"""

    def __init__(self, provider: str):
        super().__init__(
            "Conversation too long for model context window. Call clear_history().",
            provider,
        )
        self.code = "CONTEXT_OVERFLOW"


class DatabaseError(ChatDBError):
    """Connection or execution failure from a database engine"""

    def __init__(self, message: str, dialect: str):
        super().__init__(message, "DATABASE_ERROR")
        self.dialect = dialect
