"""
ReqMarks Terminal UI
====================
Rich terminal rendering: banner, status messages, the live bookmarks
table, the traffic history and the request/response viewers.
"""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.theme import Theme

from reqmarks import __version__
from reqmarks.core.analyzer import TransactionAnalyzer, split_message
from reqmarks.core.bookmarks import COLUMNS, BookmarkStore
from reqmarks.core.transaction import Transaction
from reqmarks.core.viewer import MessageEditor

# ── Theme ────────────────────────────────────────────────────────────────────

REQMARKS_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "title": "bold bright_magenta",
    "subtitle": "dim",
    "prompt": "bold bright_cyan",
    "marked": "bold magenta",
    "repeated": "bold yellow",
    "dim": "dim white",
})

console = Console(theme=REQMARKS_THEME)

# ── Banner ───────────────────────────────────────────────────────────────────

BANNER = (
    f"[title][^] ReqMarks[/] [dim]v{__version__}[/]\n"
    "[dim]  Bookmarks for captured HTTP traffic[/]"
)


def show_banner() -> None:
    """Display the ReqMarks banner."""
    console.print(BANNER)


# ── Messages ─────────────────────────────────────────────────────────────────

def print_info(text: str) -> None:
    console.print(f"[info]ℹ {text}[/]")


def print_success(text: str) -> None:
    console.print(f"[success]✅ {text}[/]")


def print_warning(text: str) -> None:
    console.print(f"[warning]⚠️  {text}[/]")


def print_error(text: str) -> None:
    console.print(f"[error]❌ {text}[/]")


# ── Bookmarks Table ──────────────────────────────────────────────────────────

def build_bookmarks_table(store: BookmarkStore, highlight: Optional[int] = None) -> Table:
    """Render every bookmark as a table row; ID is the row index."""
    table = Table(title=f"Bookmarks ({store.size()})", show_lines=False)
    for name in COLUMNS:
        no_wrap = name in ("ID", "Added", "Method", "Status", "MIME", "Protocol")
        table.add_column(name, no_wrap=no_wrap, overflow="fold")

    for row in store.rows():
        index, repeated = row[0], row[5]
        cells = [str(index)] + [str(c) for c in row[1:]]
        cells[5] = "✔" if repeated else ""
        style = "marked" if index == highlight else ("repeated" if repeated else None)
        table.add_row(*cells, style=style)
    return table


class BookmarkTableView:
    """Keeps a terminal rendering of the store in sync with its changes.

    Insertions print the new row; bulk changes redraw the whole table on
    the next ``refresh``. Repeated notifications are harmless.
    """

    def __init__(self, store: BookmarkStore, out: Optional[Console] = None):
        self.store = store
        self.out = out or console
        self.stale = False
        store.on_row_inserted(self._row_inserted)
        store.on_rows_changed(self._rows_changed)

    def _row_inserted(self, index: int) -> None:
        bookmark = self.store.get(index)
        tag = " [repeated](repeated)[/]" if bookmark.repeated else ""
        self.out.print(
            f"  [marked]#{index}[/] {bookmark.method} {bookmark.url}"
            f" [dim]{bookmark.status_code or '-'} {bookmark.mime_type}[/]{tag}"
        )

    def _rows_changed(self) -> None:
        self.stale = True

    def refresh(self, force: bool = False) -> None:
        if not (self.stale or force):
            return
        self.stale = False
        if self.store.size():
            self.out.print(build_bookmarks_table(self.store))
        else:
            self.out.print("[dim]  No bookmarks[/]")


# ── Traffic History ──────────────────────────────────────────────────────────

def show_history(items: List[Transaction], analyzer: TransactionAnalyzer,
                 limit: Optional[int] = None) -> None:
    """Display captured traffic, marking bookmarked entries."""
    table = Table(title=f"Traffic History ({len(items)})")
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Method", no_wrap=True)
    table.add_column("URL", overflow="fold")
    table.add_column("Status", no_wrap=True)
    table.add_column("Comment", no_wrap=True)

    numbered = list(enumerate(items, start=1))
    if limit:
        numbered = numbered[-limit:]
    for number, txn in numbered:
        info = analyzer.analyze_request(txn.request, txn.http_service)
        status = ""
        if txn.response is not None:
            code = analyzer.analyze_response(txn.response).status_code
            status = str(code) if code is not None else ""
        style = txn.highlight or None
        table.add_row(str(number), info.method, info.url, status, txn.comment, style=style)
    console.print(table)


# ── Viewers ──────────────────────────────────────────────────────────────────

def _message_panel(raw: bytes, title: str, max_body: int = 2000) -> Panel:
    start_line, headers, body = split_message(raw)
    head = "\n".join([start_line] + [f"{k}: {v}" for k, v in headers])
    text = body.decode("utf-8", errors="replace")
    if len(text) > max_body:
        text = text[:max_body] + f"\n... ({len(body) - max_body} more bytes)"
    content = Syntax(head + ("\n\n" + text if text else ""), "http",
                     theme="monokai", word_wrap=True)
    return Panel(content, title=title, border_style="dim", expand=True)


def show_editor(editor: MessageEditor) -> None:
    """Display the request and response viewers."""
    if editor.transaction_ref is None:
        console.print("[dim]  Nothing selected[/]")
        return
    console.print(f"[dim]Service:[/] {editor.http_service}")
    console.print(_message_panel(editor.request, "Request"))
    if editor.response:
        console.print(_message_panel(editor.response, "Response"))
    else:
        console.print("[dim]  (no response)[/]")


# ── Help ─────────────────────────────────────────────────────────────────────

def show_help() -> None:
    """Display help information."""
    help_text = """
[title]ReqMarks Commands[/]

[bold]Traffic:[/]
  /import <file.har>                  Import a HAR capture into history
  /load <req-file> <url> [res-file]   Add a raw request (and response) to history
  /history [n]                        Show captured traffic (last n)
  /mark <n[,n...]>                    Bookmark history entries

[bold]Bookmarks:[/]
  /bookmarks                          Show the bookmarks table
  /show <id>                          Select a bookmark and show its request/response
  /edit <file>                        Replace the selected request with a file's bytes
  /repeat [--table|--no-table]        Repeat the selected request in the background
  /wait [seconds]                     Wait for running repeats to finish
  /toggle                             Toggle "add repeated request to table"
  /remove <id[,id...]>                Remove bookmarks
  /clear                              Remove all bookmarks

[bold]Other:[/]
  /help                               Show this help
  /quit                               Exit ReqMarks
"""
    console.print(help_text)
