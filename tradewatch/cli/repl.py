from __future__ import annotations

import asyncio
import shlex
import traceback
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from tradewatch.core.alerts.messages import format_plan_list
from tradewatch.core.alerts.monitor import AlertMonitor
from tradewatch.core.ops.events import CliErrorLogged
from tradewatch.core.orders.ports import EventBus
from tradewatch.core.trade.flow import TradeFlow

CommandHandler = Callable[[list[str]], Awaitable[None]]


@dataclass(frozen=True)
class CommandSpec:
    name: str
    handler: CommandHandler
    help: str
    usage: str
    aliases: tuple[str, ...] = ()


class REPL:
    """
    Terminal stand-in for the chat channel.

    `/trade ...` and `/cancel` behave as chat commands for the configured
    user; any other text is a chat reply while a `/trade` task is waiting
    for one. Bare words (`help`, `tick`, `status`, `quit`) are local
    operator commands.
    """

    def __init__(
        self,
        monitor: AlertMonitor,
        flow: TradeFlow,
        *,
        user_id: str,
        event_bus: Optional[EventBus] = None,
        ops_logger: Optional[Callable[[object], None]] = None,
        prompt: str = "tradewatch> ",
    ) -> None:
        self._monitor = monitor
        self._flow = flow
        self._user_id = user_id
        self._event_bus = event_bus
        self._ops_logger = ops_logger
        self._prompt = prompt
        self._commands: dict[str, CommandSpec] = {}
        self._aliases: dict[str, str] = {}
        self._should_exit = False
        self._register_commands()

    @property
    def should_exit(self) -> bool:
        return self._should_exit

    async def run(self) -> None:
        print("tradewatch (type 'help' to list commands).")
        while not self._should_exit:
            try:
                line = await asyncio.to_thread(input, self._prompt)
            except EOFError:
                print()
                break
            await self.handle_line(line)

    async def handle_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        command = line.split(maxsplit=1)[0].lower()
        try:
            if command == "/trade":
                await self._flow.start(self._user_id, _split(line)[1:])
            elif command == "/cancel":
                if not await self._flow.cancel(self._user_id):
                    print("Nothing to cancel.")
            elif line.startswith("/"):
                print(f"Unknown chat command: {command}. Try /trade.")
            elif self._flow.is_active(self._user_id):
                await self._flow.on_message(self._user_id, line)
            else:
                await self._dispatch(command, _split(line)[1:])
        except Exception as exc:
            self._log_cli_error(exc, command, line)
            _print_exception("Command error", exc)

    async def _dispatch(self, name: str, args: list[str]) -> None:
        spec = self._resolve_command(name)
        if not spec:
            print(f"Unknown command: {name}. Type 'help' to list commands.")
            return
        await spec.handler(args)

    def _register_commands(self) -> None:
        self._register(
            CommandSpec(
                name="help",
                handler=self._cmd_help,
                help="Show available commands or help for a command.",
                usage="help [command]",
                aliases=("?",),
            )
        )
        self._register(
            CommandSpec(
                name="tick",
                handler=self._cmd_tick,
                help="Run one price/fill check now.",
                usage="tick",
            )
        )
        self._register(
            CommandSpec(
                name="status",
                handler=self._cmd_status,
                help="Show watch plans and pending fills for this user.",
                usage="status",
                aliases=("ls",),
            )
        )
        self._register(
            CommandSpec(
                name="quit",
                handler=self._cmd_quit,
                help="Exit.",
                usage="quit",
                aliases=("exit", "q"),
            )
        )

    def _register(self, spec: CommandSpec) -> None:
        self._commands[spec.name] = spec
        for alias in spec.aliases:
            self._aliases[alias] = spec.name

    def _resolve_command(self, name: str) -> Optional[CommandSpec]:
        if name in self._commands:
            return self._commands[name]
        target = self._aliases.get(name)
        if target:
            return self._commands.get(target)
        return None

    async def _cmd_help(self, args: list[str]) -> None:
        if args:
            name = args[0].lower()
            spec = self._resolve_command(name)
            if not spec:
                print(f"No such command: {name}")
                return
            print(f"{spec.name}: {spec.help}")
            print(f"Usage: {spec.usage}")
            return

        print("Chat: /trade TICKER | /trade list | /trade cancel TICKER | /trade fill TICKER | /cancel")
        for spec in sorted(self._commands.values(), key=lambda s: s.name):
            print(f"{spec.name:<10} {spec.help}")

    async def _cmd_tick(self, _args: list[str]) -> None:
        ran = await self._monitor.tick()
        if not ran:
            print("A tick is already running.")

    async def _cmd_status(self, _args: list[str]) -> None:
        plans = self._monitor.list_plans(self._user_id)
        fills = self._monitor.list_pending_fills(self._user_id)
        print(format_plan_list(plans, fills))
        state = "running" if self._monitor.is_running else "stopped"
        print(f"Monitor {state}, polling every {self._monitor.config.interval_seconds:g}s.")

    async def _cmd_quit(self, _args: list[str]) -> None:
        self._should_exit = True

    def _log_cli_error(self, exc: BaseException, command: Optional[str], raw_input: str) -> None:
        event = CliErrorLogged.now(
            message=str(exc),
            error_type=type(exc).__name__,
            traceback=_format_traceback(exc),
            command=command,
            raw_input=raw_input,
        )
        if self._ops_logger:
            self._ops_logger(event)
        elif self._event_bus:
            self._event_bus.publish(event)


def _split(line: str) -> list[str]:
    try:
        return shlex.split(line)
    except ValueError:
        return line.split()


def _print_exception(prefix: str, exc: BaseException) -> None:
    error_type = type(exc).__name__
    message = str(exc).splitlines()[0].strip() if str(exc) else ""
    if len(message) > 200:
        message = message[:197].rstrip() + "..."
    summary = f"{error_type}: {message}" if message else error_type
    print(f"{prefix}: {summary}")


def _format_traceback(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
