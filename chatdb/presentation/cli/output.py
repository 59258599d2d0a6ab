from typing import Any, Optional
from datetime import date, datetime

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from chatdb.domain.entities import QueryResult

MAX_DISPLAY_ROWS = 20
MAX_COLUMN_WIDTH = 40


def format_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class ConsolePresenter:
    """
    Terminal rendering for the ChatDB shell.
    """
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {escape(message)}")

    def print_info(self, message: str) -> None:
        self.console.print(f"  {escape(message)}")

    def print_sql(self, sql: str) -> None:
        self.console.print(f"\n  [bold cyan]SQL:[/bold cyan] {escape(sql)}")

    def print_result(self, result: QueryResult, duration_ms: Optional[int] = None) -> None:
        self.print_sql(result.sql)
        self.console.print(f"\n  {escape(result.explanation)}\n")
        self.print_table(result)
        summary = f"{result.row_count} rows | {result.chart_type}"
        if duration_ms is not None:
            summary += f" | {duration_ms}ms"
        self.console.print(f"  [dim]{summary}[/dim]\n")

    def print_table(self, result: QueryResult) -> None:
        if result.row_count == 0:
            self.console.print("  (no rows returned)\n")
            return

        table = Table(show_header=True, header_style="bold magenta")
        for column in result.columns:
            table.add_column(escape(column), max_width=MAX_COLUMN_WIDTH, overflow="ellipsis", no_wrap=True)

        for row in result.rows[:MAX_DISPLAY_ROWS]:
            table.add_row(*(escape(format_value(row.get(column))) for column in result.columns))

        self.console.print(table)
        if len(result.rows) > MAX_DISPLAY_ROWS:
            self.console.print(f"  ... and {len(result.rows) - MAX_DISPLAY_ROWS} more rows")

    def print_help(self) -> None:
        self.console.print(
            "\n"
            "  .tables   List tables in the database\n"
            "  .schema   Show the database schema\n"
            "  .clear    Clear conversation history\n"
            "  .exit     Exit the shell\n"
        )
