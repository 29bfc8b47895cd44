"""
ReqMarks CLI
============
Command-line entry point and interactive REPL: import captured traffic,
bookmark it, inspect bookmarks and repeat requests in the background.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

import click
from dotenv import load_dotenv
from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory

from reqmarks import __version__
from reqmarks.config import (
    CONFIG_DIR,
    CONFIG_FILE,
    ReqMarksConfig,
    detect_platform,
    load_config,
    save_config,
    setup_logging,
)
from reqmarks.core.errors import ReqMarksError
from reqmarks.core.history import TrafficHistory
from reqmarks.core.session import BookmarkSession
from reqmarks.ui import (
    BookmarkTableView,
    build_bookmarks_table,
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
    show_banner,
    show_editor,
    show_help,
    show_history,
)

load_dotenv()


def _parse_numbers(text: str) -> List[int]:
    """Parse ``"1,2 5"`` into ``[1, 2, 5]``."""
    tokens = [t for t in re.split(r"[,\s]+", text.strip()) if t]
    if not tokens:
        raise ValueError("expected one or more numbers")
    return [int(t) for t in tokens]


class ReqMarksApp:
    """Main ReqMarks application controller."""

    def __init__(self, config: ReqMarksConfig, session: Optional[BookmarkSession] = None):
        self.config = config
        self.history = TrafficHistory()
        self.session = session or BookmarkSession(config)
        self.table = BookmarkTableView(self.session.store)
        self.session.editor.on_change(self._on_viewer_change)

    # ── Viewer callback ──────────────────────────────────────────────────

    def _on_viewer_change(self, kind: str) -> None:
        editor = self.session.editor
        if kind == "error":
            print_error(editor.last_error)
        elif kind == "response":
            status_line = editor.response.split(b"\r\n", 1)[0].decode("iso-8859-1")
            print_success(f"Repeat finished: {status_line or '(empty response)'}")

    # ── Command Handlers ─────────────────────────────────────────────────

    def handle_input(self, user_input: str) -> bool:
        """
        Process user input. Returns False to quit.
        """
        text = user_input.strip()
        if not text:
            return True
        if not text.startswith("/"):
            print_error("Commands start with '/'. Type /help for available commands.")
            return True

        parts = text.split(maxsplit=1)
        cmd = parts[0].lower()
        args = parts[1] if len(parts) > 1 else ""

        commands = {
            "/quit": lambda: False,
            "/exit": lambda: False,
            "/q": lambda: False,
            "/help": lambda: (show_help(), True)[1],
            "/version": lambda: (console.print(f"ReqMarks v{__version__}"), True)[1],
            "/import": lambda: self._import_har(args),
            "/load": lambda: self._load_raw(args),
            "/history": lambda: self._show_history(args),
            "/mark": lambda: self._mark(args),
            "/bookmarks": lambda: self._show_bookmarks(),
            "/show": lambda: self._show_bookmark(args),
            "/edit": lambda: self._edit_request(args),
            "/repeat": lambda: self._repeat(args),
            "/wait": lambda: self._wait(args),
            "/toggle": lambda: self._toggle_repeat_in_table(),
            "/remove": lambda: self._remove(args),
            "/clear": lambda: self._clear(),
        }

        handler = commands.get(cmd)
        if not handler:
            print_error(f"Unknown command: {cmd}. Type /help for available commands.")
            return True
        try:
            result = handler()
        except ReqMarksError as e:
            print_error(str(e))
            result = True
        except (OSError, ValueError) as e:
            print_error(f"Error: {e}")
            if self.config.ui.verbose:
                console.print_exception()
            result = True
        self.table.refresh()
        return result if result is not None else True

    def process_pending(self) -> None:
        """Apply finished background repeats (call from the REPL thread)."""
        self.session.process_pending()
        self.table.refresh()

    # ── Traffic ──────────────────────────────────────────────────────────

    def _import_har(self, args: str) -> bool:
        if not args:
            print_error("Usage: /import <file.har>")
            return True
        count = self.history.import_har(Path(args.strip()).expanduser())
        print_success(f"Imported {count} requests ({len(self.history)} in history)")
        return True

    def _load_raw(self, args: str) -> bool:
        parts = args.split()
        if len(parts) < 2:
            print_error("Usage: /load <request-file> <service-url> [response-file]")
            return True
        response_file = Path(parts[2]).expanduser() if len(parts) > 2 else None
        number = self.history.load_raw(Path(parts[0]).expanduser(), parts[1], response_file)
        print_success(f"Added history entry #{number}")
        return True

    def _show_history(self, args: str) -> bool:
        items = self.history.items()
        if not items:
            print_info("No captured traffic. Use /import or /load first.")
            return True
        limit = int(args) if args.strip().isdigit() else None
        show_history(items, self.session.analyzer, limit=limit)
        return True

    def _mark(self, args: str) -> bool:
        if not args:
            print_error("Usage: /mark <n[,n...]>")
            return True
        transactions = []
        for number in _parse_numbers(args):
            txn = self.history.get(number)
            if txn is None:
                print_error(f"History entry #{number} not found (1-{len(self.history)})")
                return True
            transactions.append(txn)
        added = self.session.add_bookmarks(transactions)
        print_success(f"Bookmarked {len(added)} request(s)")
        return True

    # ── Bookmarks ────────────────────────────────────────────────────────

    def _show_bookmarks(self) -> bool:
        store = self.session.store
        if not store.size():
            print_info("No bookmarks")
            return True
        selected = self.session.selected
        highlight = store.index_of(selected) if selected is not None else None
        console.print(build_bookmarks_table(store, highlight=highlight))
        return True

    def _show_bookmark(self, args: str) -> bool:
        if not args.strip().isdigit():
            print_error("Usage: /show <id>")
            return True
        bookmark = self.session.select(int(args))
        console.print(f"[marked]#{args.strip()}[/] {bookmark.method} {bookmark.url}"
                      + (f" [dim]- {bookmark.title}[/]" if bookmark.title else ""))
        show_editor(self.session.editor)
        return True

    def _edit_request(self, args: str) -> bool:
        if self.session.selected is None:
            print_error("Select a bookmark first (/show <id>)")
            return True
        if not args:
            print_error("Usage: /edit <file>")
            return True
        self.session.edit_request(Path(args.strip()).expanduser().read_bytes())
        print_success("Request viewer updated; /repeat will send the edited request")
        return True

    def _repeat(self, args: str) -> bool:
        flag = args.strip().lower()
        also_bookmark: Optional[bool] = None
        if flag == "--table":
            also_bookmark = True
        elif flag == "--no-table":
            also_bookmark = False
        elif flag:
            print_error("Usage: /repeat [--table|--no-table]")
            return True
        task = self.session.repeat_selected(also_bookmark)
        if task is not None:
            target = "and adding to table" if task.also_bookmark else "without adding to table"
            print_info(f"Repeat #{task.id} running in background ({target})")
        return True

    def _wait(self, args: str) -> bool:
        timeout = float(args) if args.strip() else self.config.repeat.timeout + 5
        running = len(self.session.workflow.outstanding())
        if running:
            with console.status(f"[cyan]Waiting for {running} repeat(s)..."):
                finished = self.session.workflow.wait_all(timeout=timeout)
            if not finished:
                print_warning("Some repeats are still running")
        self.process_pending()
        return True

    def _toggle_repeat_in_table(self) -> bool:
        self.session.repeat_in_table = not self.session.repeat_in_table
        self.config.bookmarks.repeat_in_table = self.session.repeat_in_table
        save_config(self.config)
        state = "on" if self.session.repeat_in_table else "off"
        print_info(f"Add repeated request to table: {state}")
        return True

    def _remove(self, args: str) -> bool:
        if not args:
            print_error("Usage: /remove <id[,id...]>")
            return True
        removed = self.session.remove_rows(_parse_numbers(args))
        print_success(f"Removed {removed} bookmark(s)")
        return True

    def _clear(self) -> bool:
        count = self.session.clear()
        print_success(f"Cleared {count} bookmark(s)")
        return True

    def close(self) -> None:
        self.session.close()


# ── Prompt ───────────────────────────────────────────────────────────────────

def get_prompt(app: ReqMarksApp) -> str:
    running = len(app.session.workflow.outstanding())
    busy = f"[{running}⟳]" if running else ""
    return f"[^] reqmarks{busy}> "


# ── Main CLI ─────────────────────────────────────────────────────────────────

@click.group(invoke_without_command=True)
@click.option("--no-banner", is_flag=True, help="Skip banner display")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--timeout", "-t", type=float, default=None, help="Repeat request timeout (seconds)")
@click.option("--verify-tls/--no-verify-tls", default=None, help="Verify TLS certificates on repeat")
@click.version_option(__version__, prog_name="reqmarks")
@click.pass_context
def main(ctx, no_banner, verbose, timeout, verify_tls):
    """ReqMarks: bookmarks for captured HTTP traffic"""
    ctx.ensure_object(dict)

    config = load_config()

    # Apply CLI overrides
    if verbose:
        config.ui.verbose = True
    if no_banner:
        config.ui.show_banner = False
    if timeout is not None:
        config.repeat.timeout = timeout
    if verify_tls is not None:
        config.repeat.verify_tls = verify_tls

    setup_logging(config.ui.verbose)
    ctx.obj["config"] = config

    if ctx.invoked_subcommand is None:
        _interactive_repl(ReqMarksApp(config), config.ui.show_banner)


@main.command(name="import")
@click.argument("har_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_(ctx, har_file):
    """Start the REPL with a HAR capture loaded into history."""
    config = ctx.obj["config"]
    app = ReqMarksApp(config)
    app.handle_input(f"/import {har_file}")
    _interactive_repl(app, config.ui.show_banner)


@main.command()
@click.pass_context
def config(ctx):
    """Show current configuration."""
    cfg = ctx.obj["config"]
    from rich.table import Table

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Highlight color", cfg.bookmarks.highlight_color)
    table.add_row("Comment marker", cfg.bookmarks.comment)
    table.add_row("Max parameters", str(cfg.bookmarks.max_parameters))
    table.add_row("Repeat in table", "on" if cfg.bookmarks.repeat_in_table else "off")
    table.add_row("Repeat timeout", f"{cfg.repeat.timeout}s")
    table.add_row("Verify TLS", "yes" if cfg.repeat.verify_tls else "no")
    table.add_row("Repeat workers", str(cfg.repeat.max_workers or "one thread per repeat"))
    table.add_row("Buffers dir", str(cfg.storage.buffers_path))
    console.print(table)
    print_info(f"Config file: {CONFIG_FILE}")


# ── Interactive REPL ─────────────────────────────────────────────────────────

def _interactive_repl(app: ReqMarksApp, show_banner_flag: bool = True) -> None:
    """Main interactive REPL loop."""
    if show_banner_flag:
        show_banner()
        plat = detect_platform()
        console.print(
            f"[dim]  Platform: {plat['system']} {plat['machine']} | "
            f"Python {plat['python']} | Type /help for commands, /quit to exit[/]\n"
        )

    history_file = CONFIG_DIR / "history"
    try:
        session: PromptSession = PromptSession(
            history=FileHistory(str(history_file)),
            auto_suggest=AutoSuggestFromHistory(),
        )
    except Exception:
        session = PromptSession()

    try:
        while True:
            app.process_pending()
            try:
                user_input = session.prompt(get_prompt(app))
                if not app.handle_input(user_input):
                    break
            except KeyboardInterrupt:
                console.print("\n[dim]Interrupted (type /quit to exit)[/]")
                continue
            except EOFError:
                break
    finally:
        running = len(app.session.workflow.outstanding())
        if running:
            print_warning(f"Abandoning {running} running repeat(s)")
        app.close()

    console.print("\n[dim]Goodbye! 🛡️[/]\n")


if __name__ == "__main__":
    main()
