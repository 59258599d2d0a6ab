#!/usr/bin/env python3
"""
CLI entrypoint: chat with a database from the terminal.
"""
import argparse
import asyncio
import json
import sys
import time
from typing import Optional, Sequence

from dotenv import load_dotenv

from chatdb.application.services.orchestrator_service import ChatDB
from chatdb.domain.errors import ChatDBError
from chatdb.presentation.cli.output import ConsolePresenter
from chatdb.presentation.config import resolve_config

VERSION = "0.1.0"

EPILOG = """environment variables:
  CHATDB_DATABASE_URL     Database URL (or DATABASE_URL)
  CHATDB_LLM_API_KEY      LLM API key (or OPENAI_API_KEY / ANTHROPIC_API_KEY)
  CHATDB_LLM_URL          LLM endpoint (or OLLAMA_URL)
  CHATDB_LLM_MODEL        Model name (or OLLAMA_MODEL)

shell commands:
  .tables  .schema  .clear  .exit

examples:
  chatdb -d postgresql://localhost/mydb -k sk-...
  chatdb -d ./data.sqlite -l http://localhost:11434
  chatdb -q "top 10 customers by revenue" --json
"""


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chatdb",
        description="Chat with your database using natural language.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-d", "--database", type=str, help="Database connection string or SQLite file path")
    parser.add_argument("-l", "--llm", type=str, help="LLM endpoint URL (for Ollama/local servers)")
    parser.add_argument("-k", "--api-key", type=str, help="LLM API key (OpenAI or Anthropic)")
    parser.add_argument("-p", "--provider", type=str, choices=["openai", "anthropic", "openai-compatible"],
                        help="LLM provider")
    parser.add_argument("-m", "--model", type=str, help="Model name")
    parser.add_argument("-s", "--schema", type=str, help="Default schema name")
    parser.add_argument("-q", "--query", type=str, help="Run a single question and exit")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON (with --query)")
    parser.add_argument("-v", "--version", action="version", version=f"chatdb {VERSION}")
    return parser.parse_args(argv)


async def handle_line(db: ChatDB, presenter: ConsolePresenter, line: str) -> bool:
    """
    Run one shell input. Returns False when the shell should exit.
    """
    command = line.strip()
    if not command:
        return True

    if command == ".help":
        presenter.print_help()
        return True

    if command in (".exit", ".quit"):
        return False

    if command == ".clear":
        db.clear_history()
        presenter.print_info("History cleared.\n")
        return True

    try:
        if command == ".tables":
            tables = await db.list_tables()
            presenter.print_info("\n  ".join(tables) + "\n")
        elif command == ".schema":
            presenter.console.print(await db.get_schema(), markup=False)
        else:
            start_time = time.monotonic()
            result = await db.ask(command)
            presenter.print_result(result, int((time.monotonic() - start_time) * 1000))
    except ChatDBError as e:
        presenter.print_error(e.message)

    return True


async def run_repl(db: ChatDB, presenter: ConsolePresenter) -> int:
    try:
        tables = await db.list_tables()
    except ChatDBError as e:
        presenter.print_error(f"Connection error: {e.message}")
        return 1

    presenter.print_info(f"Connected. Found {len(tables)} tables.")
    presenter.print_info("Type your question, or .help for commands.\n")

    while True:
        try:
            line = await asyncio.to_thread(presenter.console.input, "chatdb> ")
        except (EOFError, KeyboardInterrupt):
            break
        if not await handle_line(db, presenter, line):
            break
    return 0


async def run_single_query(db: ChatDB, presenter: ConsolePresenter, question: str, as_json: bool) -> int:
    try:
        result = await db.query(question)
    except ChatDBError as e:
        presenter.print_error(e.message)
        return 1

    if as_json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        presenter.print_result(result)
    return 0


async def run(args: argparse.Namespace, presenter: ConsolePresenter) -> int:
    config = resolve_config(vars(args))
    db = ChatDB(config)
    try:
        if args.query:
            return await run_single_query(db, presenter, args.query, args.json)
        presenter.console.print(f"[bold]chatdb v{VERSION}[/bold] - Chat with your database")
        return await run_repl(db, presenter)
    finally:
        await db.close()


def main(argv: Optional[Sequence[str]] = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    presenter = ConsolePresenter()
    try:
        code = asyncio.run(run(args, presenter))
    except ChatDBError as e:
        presenter.print_error(e.message)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
