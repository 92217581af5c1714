"""Interactive terminal driver for axiomate."""

from __future__ import annotations

import argparse
import asyncio
import os
import re
import shlex
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.table import Table

from axiomate import __version__
from axiomate.config import Config, get_data_dir, get_sessions_dir, load_config
from axiomate.core.llm.factory import create_client
from axiomate.core.models import get_model, list_models
from axiomate.logging import get_logger, setup_logging
from axiomate.session.content import FileReference
from axiomate.session.orchestrator import Orchestrator
from axiomate.session.protocols import TurnUpdate, UpdateKind
from axiomate.session.storage import ConversationSettings, SessionStore
from axiomate.tools.types import ToolOutput

log = get_logger("cli")

console = Console()

_FILE_MENTION = re.compile(r"(?<!\S)@([\w./\\-]+)")


def parse_file_references(text: str, cwd: str) -> list[FileReference]:
    """`@path` tokens in `text`, marked as directories when they are one."""
    refs: list[FileReference] = []
    seen: set[str] = set()
    for match in _FILE_MENTION.finditer(text):
        path = match.group(1)
        if path in seen:
            continue
        seen.add(path)
        full = Path(path) if os.path.isabs(path) else Path(cwd) / path
        refs.append(FileReference(path, is_directory=full.is_dir()))
    return refs


class UnavailableToolExecutor:
    """Executor for the terminal driver, which ships no tool runners."""

    async def execute_tool(self, name: str, args: dict[str, Any]) -> ToolOutput:
        return ToolOutput(exit_code=1, error=f"Tool {name} is not available in this terminal")


class ConsoleRenderer:
    """Prints TurnUpdate events as they arrive."""

    def __init__(self, out: Console | None = None) -> None:
        self.out = out or console
        self._streaming = False

    def _end_stream(self) -> None:
        if self._streaming:
            self.out.print()
            self._streaming = False

    def __call__(self, update: TurnUpdate) -> None:
        p = update.payload
        kind = update.kind
        if kind is UpdateKind.DELTA:
            if p.get("content"):
                self.out.print(p["content"], end="", markup=False, highlight=False)
                self._streaming = True
            return

        self._end_stream()
        if kind is UpdateKind.QUEUED:
            self.out.print(f"[dim]queued ({p.get('position', '?')} waiting)[/dim]")
        elif kind is UpdateKind.TOOL_CALL:
            self.out.print(f"[cyan]> {p.get('name')}[/cyan] [dim]{p.get('arguments', '')}[/dim]")
        elif kind is UpdateKind.TOOL_RESULT:
            self.out.print(f"[dim]{p.get('content', '')}[/dim]", markup=False)
        elif kind is UpdateKind.SYSTEM:
            self.out.print(f"[yellow]{p.get('text', '')}[/yellow]")
        elif kind is UpdateKind.ERROR:
            self.out.print(f"[red]Error: {p.get('text', '')}[/red]")
        elif kind is UpdateKind.STOPPED:
            self.out.print(f"[yellow]Stopped, {p.get('discarded', 0)} queued message(s) discarded[/yellow]")
        elif kind is UpdateKind.COMPACTED:
            self.out.print(f"[green]Compacted into new session {p.get('new_session_id')}[/green]")


class Repl:
    """Reads lines, routes slash commands, enqueues everything else."""

    def __init__(self, orchestrator: Orchestrator, plan_mode: bool = False, history_file: Path | None = None) -> None:
        self.orchestrator = orchestrator
        self.plan_mode = plan_mode
        self.history_file = history_file
        self._running = False

    async def handle(self, line: str) -> bool:
        """Process one input line; returns False when the REPL should exit."""
        line = line.strip()
        if not line:
            return True
        if not line.startswith("/"):
            refs = parse_file_references(line, self.orchestrator.cwd)
            self.orchestrator.enqueue(line, refs, self.plan_mode)
            return True

        try:
            parts = shlex.split(line)
        except ValueError as e:
            console.print(f"[red]Cannot parse command: {e}[/red]")
            return True
        cmd, args = parts[0].lower(), parts[1:]
        handlers = {
            "/stop": self._cmd_stop,
            "/compact": self._cmd_compact,
            "/new": self._cmd_new,
            "/sessions": self._cmd_sessions,
            "/plan": self._cmd_plan,
            "/status": self._cmd_status,
            "/help": self._cmd_help,
        }
        if cmd in ("/quit", "/exit"):
            return False
        handler = handlers.get(cmd)
        if handler is None:
            console.print(f"[red]Unknown command: {cmd}[/red]")
            return True
        await handler(args)
        return True

    async def _cmd_stop(self, args: list[str]) -> None:
        self.orchestrator.stop()

    async def _cmd_compact(self, args: list[str]) -> None:
        if self.orchestrator.is_processing():
            console.print("[yellow]Wait for the current reply or /stop it first[/yellow]")
            return
        await self.orchestrator.compact()

    async def _cmd_new(self, args: list[str]) -> None:
        session_id = self.orchestrator.new_session()
        if session_id is None:
            console.print("[yellow]Wait for the current reply or /stop it first[/yellow]")
        else:
            console.print(f"Started session {session_id}")

    async def _cmd_sessions(self, args: list[str]) -> None:
        store = self.orchestrator.store
        if args:
            if not self.orchestrator.switch_session(args[0]):
                console.print(f"[red]Cannot switch to {args[0]}[/red]")
            return

        table = Table(title="Sessions")
        table.add_column("")
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Messages", justify="right")
        table.add_column("Tokens", justify="right")
        for info in store.list_sessions():
            table.add_row(
                "*" if info.is_active else "",
                info.id,
                info.name,
                str(info.message_count),
                str(info.token_usage),
            )
        console.print(table)

    async def _cmd_plan(self, args: list[str]) -> None:
        self.plan_mode = not self.plan_mode
        console.print(f"Plan mode {'on' if self.plan_mode else 'off'}")

    async def _cmd_status(self, args: list[str]) -> None:
        status = self.orchestrator.session_status()
        console.print(
            f"{status.used_tokens}/{status.context_window} tokens "
            f"({status.usage_percent:.0f}%), {status.message_count} messages"
        )

    async def _cmd_help(self, args: list[str]) -> None:
        table = Table(title="Commands")
        table.add_column("Command", style="bold")
        table.add_column("Description")
        for cmd, desc in (
            ("/stop", "Abort the current reply and drop queued messages"),
            ("/compact", "Summarize the conversation into a new session"),
            ("/new", "Start a new session"),
            ("/sessions [id]", "List sessions, or switch to one"),
            ("/plan", "Toggle plan mode for new messages"),
            ("/status", "Show context usage"),
            ("/quit", "Exit"),
        ):
            table.add_row(cmd, desc)
        console.print(table)

    async def run(self) -> None:
        self._running = True
        console.print(f"[bold]axiomate[/bold] v{__version__} ({self.orchestrator.model.name})")
        console.print("Type [bold]/help[/bold] for commands, [bold]/quit[/bold] to exit.\n")

        history = FileHistory(str(self.history_file)) if self.history_file else None
        prompt_session: PromptSession[str] = PromptSession(
            history=history,
            auto_suggest=AutoSuggestFromHistory(),
        )

        with patch_stdout():
            while self._running:
                try:
                    prompt = "plan> " if self.plan_mode else "> "
                    line = await prompt_session.prompt_async(prompt)
                except KeyboardInterrupt:
                    self.orchestrator.stop()
                    continue
                except EOFError:
                    break
                self._running = await self.handle(line)

        if self.orchestrator.is_processing():
            self.orchestrator.stop()
        await self.orchestrator.wait_idle()


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="axiomate",
        description="Terminal AI coding assistant",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-m", "--model", help="Model id from the catalog")
    parser.add_argument("--plan", action="store_true", help="Start in plan mode")
    parser.add_argument("--cwd", type=Path, help="Working directory (default: current)")
    parser.add_argument("--list-models", action="store_true", help="List known models and exit")
    return parser


def build_orchestrator(config: Config, model_id: str | None, cwd: str) -> Orchestrator:
    """Wire the client, store and orchestrator for `model_id`."""
    model = get_model(model_id or config.llm.model, config)
    if model is None:
        raise SystemExit(f"Unknown model: {model_id or config.llm.model}")

    store = SessionStore(
        get_sessions_dir(config.session.directory),
        ConversationSettings(
            context_window=model.context_window,
            near_limit_threshold=config.session.near_limit_threshold,
            full_threshold=config.session.full_threshold,
            compact_message_limit=model.compact_message_limit,
            model_id=model.id,
        ),
    )
    renderer = ConsoleRenderer()
    orchestrator = Orchestrator(
        create_client(model, config),
        model,
        store,
        catalog=[],
        executor=UnavailableToolExecutor(),
        config=config,
        cwd=cwd,
        on_update=renderer,
    )
    orchestrator.start()
    return orchestrator


def main(argv: Sequence[str] | None = None) -> int:
    args = create_parser().parse_args(argv)
    cwd = str((args.cwd or Path.cwd()).resolve())

    config = load_config(project_root=cwd)
    setup_logging(config.logging)

    if args.list_models:
        for model in list_models(config):
            console.print(f"{model.id}  [dim]{model.protocol.value}, {model.context_window} ctx[/dim]")
        return 0

    orchestrator = build_orchestrator(config, args.model, cwd)
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    repl = Repl(
        orchestrator,
        plan_mode=args.plan or config.llm.plan_mode,
        history_file=data_dir / "history",
    )
    log.info("Starting REPL in %s", cwd)
    asyncio.run(repl.run())
    return 0
