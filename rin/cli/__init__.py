"""
rin.cli - Command-Line Interface

Local console front-end for Rin.

Usage:
    rin chat --user-id 1
    rin chat --user-id 1 --admin --memory
    rin tools --admin --linked
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rin.chat import ChatHandler
from rin.core.tools import CallerCapabilities, build_default_registry
from rin.settings import RinSettings, get_settings
from rin.storage import InMemoryStore, SQLStore

EXIT_COMMANDS = frozenset({"/quit", "/exit"})


class ConsoleTransport:
    """``Transport`` that renders replies in the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    async def send_text(self, caller_id: int, text: str) -> None:
        self.console.print(Panel(Text(text), title="rin", title_align="left", border_style="cyan"))

    async def send_typing(self, caller_id: int) -> None:
        return None

    async def send_file(self, caller_id: int, path: Path, caption: str | None = None) -> None:
        line = f"[file] {path}"
        if caption:
            line += f"  {caption}"
        self.console.print(Text(line, style="green"))


def _build_account(settings: RinSettings):
    if not settings.google_tokens_file:
        return None
    from rin.capabilities.google import FileTokenStore, GoogleAccountClient

    tokens = FileTokenStore(settings.google_tokens_file)
    return GoogleAccountClient(
        load_tokens=tokens.load,
        save_tokens=tokens.save,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
    )


async def _chat(args: argparse.Namespace) -> None:
    """Interactive chat loop. Ctrl+C cancels the in-flight reply."""
    settings = get_settings()
    if args.admin:
        settings = settings.model_copy(
            update={"admin_user_ids": f"{settings.admin_user_ids},{args.user_id}"}
        )

    console = Console()
    store = InMemoryStore() if args.memory else await SQLStore.connect(settings.database_url)
    handler = ChatHandler.from_settings(
        settings,
        store=store,
        transport=ConsoleTransport(console),
        account=_build_account(settings),
    )

    loop = asyncio.get_running_loop()
    console.print("[dim]Type /quit to leave. Ctrl+C cancels a reply in progress.[/dim]")
    try:
        while True:
            try:
                line = await asyncio.to_thread(console.input, "[bold]you>[/bold] ")
            except (EOFError, KeyboardInterrupt):
                break
            line = line.strip()
            if not line:
                continue
            if line in EXIT_COMMANDS:
                break

            loop.add_signal_handler(signal.SIGINT, handler.cancel, args.user_id)
            try:
                await handler.handle_message(args.user_id, line)
            finally:
                loop.remove_signal_handler(signal.SIGINT)
        await handler.drain()
    finally:
        if isinstance(store, SQLStore):
            await store.close()


async def _tools(args: argparse.Namespace) -> None:
    """Print the tool declarations visible to a caller."""
    caps = CallerCapabilities(admin=args.admin, has_linked_account=args.linked)
    registry = build_default_registry()

    table = Table(title=f"Visible tools (admin={args.admin}, linked={args.linked})")
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Description")
    for declaration in registry.declarations(caps):
        table.add_row(declaration.name, declaration.description)
    Console().print(table)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="rin",
        description="rin - personal assistant with tools",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: RIN_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # chat
    chat_p = subparsers.add_parser("chat", help="Chat with Rin in the terminal")
    chat_p.add_argument("--user-id", type=int, default=1, help="Caller id (default: 1)")
    chat_p.add_argument("--admin", action="store_true", help="Treat the caller as an admin")
    chat_p.add_argument(
        "--memory", action="store_true", help="Use a throwaway in-memory store instead of the database"
    )
    chat_p.set_defaults(func=_chat)

    # tools
    tools_p = subparsers.add_parser("tools", help="List tools visible to a caller")
    tools_p.add_argument("--admin", action="store_true", help="Include admin-only tools")
    tools_p.add_argument("--linked", action="store_true", help="Include linked-account tools")
    tools_p.set_defaults(func=_tools)

    return parser


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level or get_settings().log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        asyncio.run(args.func(args))
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
