import asyncio
import json
import re
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from chatdb.domain.interfaces import IDatabaseAdapter, ILLMProvider
from chatdb.domain.entities import (
    BuiltPrompt,
    ChatDBConfig,
    ConversationMessage,
    DebugInfo,
    LLMMessage,
    PromptStats,
    QueryResult,
    CHART_TYPES,
)
from chatdb.domain.errors import ResponseParseError, ValidationError
from chatdb.application.services.prompt_service import build_system_prompt
from chatdb.application.services.schema_service import SchemaService
from chatdb.application.services.sql_guard import validate_sql, ensure_limit
from chatdb.application.services.token_service import estimate_tokens, truncate_schema

logger = logging.getLogger(__name__)

RESPONSE_RESERVE = 256
SCHEMA_SAFETY_MARGIN = 50
MIN_SCHEMA_BUDGET = 200
GENERATION_MAX_TOKENS = 256


def assemble_messages(
    dialect: str,
    schema_text: str,
    history: Sequence[ConversationMessage],
    message: str,
    context_length: int,
    schema_name: str
) -> BuiltPrompt:
    """
    Build the message sequence for one question under the model's context budget.

    The schema is truncated first so the rules, question and response reserve
    always fit. History is then walked newest to oldest and included until the
    first message that does not fit; nothing older than that message is
    considered.
    """
    rules_tokens = estimate_tokens(build_system_prompt(dialect, "", schema_name))
    user_tokens = estimate_tokens(message)

    schema_budget = context_length - rules_tokens - user_tokens - RESPONSE_RESERVE - SCHEMA_SAFETY_MARGIN
    trimmed_schema, schema_truncated = truncate_schema(schema_text, max(schema_budget, MIN_SCHEMA_BUDGET))

    system_prompt = build_system_prompt(dialect, trimmed_schema, schema_name)
    system_msg = LLMMessage(role="system", content=system_prompt)
    user_msg = LLMMessage(role="user", content=message)

    system_tokens = estimate_tokens(system_prompt)
    available = context_length - system_tokens - user_tokens - RESPONSE_RESERVE

    history_msgs: List[LLMMessage] = []
    history_tokens = 0

    if available > 0:
        for msg in reversed(history):
            content = msg.content if msg.role == "user" else _assistant_content(msg)
            tokens = estimate_tokens(content)
            if tokens > available:
                break
            available -= tokens
            history_tokens += tokens
            history_msgs.append(LLMMessage(role=msg.role, content=content))
        history_msgs.reverse()

    return BuiltPrompt(
        messages=[system_msg, *history_msgs, user_msg],
        stats=PromptStats(
            system_tokens=system_tokens,
            user_tokens=user_tokens,
            history_tokens=history_tokens,
            history_messages=len(history_msgs),
            schema_truncated=schema_truncated,
        ),
    )


def _assistant_content(msg: ConversationMessage) -> str:
    """Replay an assistant turn in the same JSON shape the model produces"""
    return json.dumps(
        {
            "sql": msg.data.sql if msg.data else "",
            "explanation": msg.content,
            "chartType": msg.data.chart_type if msg.data else "table",
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


def parse_response(content: str) -> Dict[str, Any]:
    """Decode the model's JSON payload and check required fields"""
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError) as e:
        raise ResponseParseError(f"Failed to parse LLM response as JSON: {content}", content) from e

    if not isinstance(parsed, dict) or not parsed.get("sql") or not parsed.get("explanation"):
        raise ResponseParseError("Invalid AI response: missing sql or explanation", content)
    return parsed


def clean_sql(sql: str, schema_name: str) -> str:
    """
    Undo escape sequences models often leave in SQL and drop qualifiers
    naming the active schema (``schema.table`` or ``"schema".table``).
    """
    sql = sql.replace('\\"', '"').replace("\\n", " ").replace("\\\\", "\\").strip()
    escaped = re.escape(schema_name)
    schema_prefix = re.compile(rf'(?:"?{escaped}"?\.)|(?:{escaped}\.)', re.IGNORECASE)
    return schema_prefix.sub("", sql)


class ChatDB:
    """
    Orchestrates question -> prompt -> model -> guard -> database.

    ``query`` is stateless (callers pass their own history); ``ask`` keeps an
    internal conversation. The adapter and provider are resolved lazily on
    first use and shared by concurrent callers.
    """

    def __init__(self, config: ChatDBConfig):
        self.config = config
        self.db_adapter: Optional[IDatabaseAdapter] = None
        self.llm_provider: Optional[ILLMProvider] = None
        self.schema_service: Optional[SchemaService] = None
        self.default_schema: Optional[str] = None
        self._history: List[ConversationMessage] = []
        self._initialized = False
        self._init_task: Optional[asyncio.Task] = None

    async def _initialize(self) -> None:
        from chatdb.infrastructure.database.registry import resolve_database_adapter
        from chatdb.infrastructure.llm.registry import resolve_llm_provider

        if isinstance(self.config.database, IDatabaseAdapter):
            db_adapter = self.config.database
        else:
            db_adapter = resolve_database_adapter(self.config.database, self.config.query_timeout)

        if isinstance(self.config.llm, ILLMProvider):
            llm_provider = self.config.llm
        else:
            llm_provider = resolve_llm_provider(self.config.llm)

        self.db_adapter = db_adapter
        self.llm_provider = llm_provider
        self.schema_service = SchemaService(db_adapter, self.config.schema_cache_ttl)
        self.default_schema = self.config.schema or db_adapter.default_schema
        self._initialized = True
        logger.info(
            f"ChatDB ready: dialect={db_adapter.dialect}, provider={llm_provider.name}, "
            f"schema={self.default_schema}"
        )

    async def _ensure_initialized(self) -> None:
        """Run initialization once; concurrent callers await the same task"""
        if self._initialized:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        task = self._init_task
        try:
            await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

    @property
    def dialect(self) -> Optional[str]:
        """Dialect of the connected database, once initialized"""
        return self.db_adapter.dialect if self.db_adapter else None

    @property
    def history(self) -> Tuple[ConversationMessage, ...]:
        return tuple(self._history)

    async def query(
        self,
        message: str,
        schema: Optional[str] = None,
        history: Optional[Sequence[ConversationMessage]] = None
    ) -> QueryResult:
        """
        Ask a natural language question and get structured results.

        Stateless: pass ``history`` explicitly for follow-up questions.

        Raises:
            ResponseParseError: the model reply is not the expected JSON.
            ValidationError: the generated SQL was rejected by the guard.
            LLMError / ContextOverflowError / DatabaseError: backend failures.
        """
        await self._ensure_initialized()

        schema_name = schema or self.default_schema
        start_time = time.monotonic()
        logger.info(f"Processing query: {message[:100]}...")

        # Step 1: Schema text (cached)
        schema_text = await self.schema_service.get_schema_text(schema_name)

        # Step 2: Context window
        context_length = await self.llm_provider.get_context_length()

        # Step 3: Budgeted prompt
        prompt = assemble_messages(
            self.db_adapter.dialect,
            schema_text,
            history or [],
            message,
            context_length,
            schema_name,
        )
        stats = prompt.stats
        logger.debug(
            f"Prompt tokens: system={stats.system_tokens} user={stats.user_tokens} "
            f"history={stats.history_tokens} ({stats.history_messages} msgs), "
            f"schema truncated={stats.schema_truncated}"
        )

        # Step 4: Model call
        result = await self.llm_provider.generate(prompt.messages, max_tokens=GENERATION_MAX_TOKENS)
        parsed = parse_response(result.content)

        # Step 5: Clean up SQL
        sql = clean_sql(str(parsed["sql"]), schema_name)

        # Step 6: Guard
        validation = validate_sql(sql, allow_writes=self.config.allow_writes)
        if not validation.valid:
            logger.warning(f"Blocked SQL ({validation.error}): {sql}")
            raise ValidationError(validation.error, sql)

        # Step 7: Row cap
        safe_sql = ensure_limit(sql, self.config.max_rows)

        # Step 8: Execute
        raw = await self.db_adapter.execute(safe_sql, schema_name)

        chart_type = parsed.get("chartType")
        if chart_type not in CHART_TYPES:
            chart_type = "table"

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(f"Query processed in {duration_ms}ms, {raw.row_count} rows")

        debug = None
        if self.config.debug:
            debug = DebugInfo(
                model=result.model,
                context_length=context_length,
                system_tokens=stats.system_tokens,
                user_tokens=stats.user_tokens,
                history_tokens=stats.history_tokens,
                history_messages=stats.history_messages,
                schema_truncated=stats.schema_truncated,
                duration_ms=duration_ms,
                dialect=self.db_adapter.dialect,
            )

        return QueryResult(
            sql=safe_sql,
            explanation=str(parsed["explanation"]),
            chart_type=chart_type,
            columns=raw.columns,
            rows=raw.rows,
            row_count=raw.row_count,
            debug=debug,
        )

    async def ask(self, message: str) -> QueryResult:
        """Stateful conversation using the internal history"""
        result = await self.query(message, history=list(self._history))
        self._history.append(ConversationMessage(role="user", content=message))
        self._history.append(ConversationMessage(role="assistant", content=result.explanation, data=result))
        return result

    def clear_history(self) -> None:
        self._history = []

    def refresh_schema(self) -> None:
        """Forget every cached schema text"""
        if self.schema_service is not None:
            self.schema_service.invalidate()

    async def get_schema(self, schema: Optional[str] = None) -> str:
        await self._ensure_initialized()
        return await self.db_adapter.get_schema_text(schema or self.default_schema)

    async def list_schemas(self) -> List[str]:
        await self._ensure_initialized()
        return await self.db_adapter.list_schemas()

    async def list_tables(self, schema: Optional[str] = None) -> List[str]:
        await self._ensure_initialized()
        return await self.db_adapter.list_tables(schema or self.default_schema)

    async def close(self) -> None:
        """Close database connections; safe to call before first use"""
        if self._initialized:
            await self.db_adapter.close()
