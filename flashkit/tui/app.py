"""Main Textual application."""

from __future__ import annotations

import asyncio

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical, VerticalScroll
from textual.widgets import Footer, Static

from ..config import Identity
from ..pipeline import Session
from .commands import CommandResult, cmd_dispatch_init, cmd_establish, cmd_provision, cmd_report
from .widgets.log_panel import LogPanel
from .widgets.status_bar import StatusBar
from .widgets.step_menu import StepItem, StepMenu

_STEPS = [
    StepItem("Establish", "establish", "Connect, check program, fund payer"),
    StepItem("Provision", "provision", "Create missing seeded accounts"),
    StepItem("Dispatch Init", "dispatch", "Send the init instruction"),
    StepItem("Report", "report", "Dump raw account data"),
    StepItem("Run All", "run", "Every step in order"),
]

_PIPELINE = ("establish", "provision", "dispatch", "report")


class FlashkitApp(App):
    """Seeded account provisioning for the flashloan program."""

    TITLE = "FLASHKIT"

    DEFAULT_CSS = """
    #main {
        height: 1fr;
        padding: 0 1;
    }
    #result-scroll {
        height: 1fr;
        min-height: 4;
        background: #0a0e17;
        border: solid #1a3a4a;
        margin-top: 1;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", show=True),
        Binding("r", "run_all", "Run All", show=True),
    ]

    def __init__(self, identity: Identity) -> None:
        super().__init__()
        self.identity = identity
        self.session: Session | None = None
        self.last_result: CommandResult | None = None

    def compose(self) -> ComposeResult:
        with Vertical(id="main"):
            yield Static("[#00ffcc bold]FLASHKIT[/]")
            yield StepMenu(_STEPS, id="steps")
            with VerticalScroll(id="result-scroll"):
                yield Static("", id="result")
        yield LogPanel(id="log")
        yield StatusBar(id="status")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one(StatusBar).endpoint = self.identity.rpc_url

    def on_step_menu_selected(self, event: StepMenu.Selected) -> None:
        self.run_worker(self.run_step(event.key), exclusive=True)

    def action_run_all(self) -> None:
        self.run_worker(self.run_step("run"), exclusive=True)

    async def run_step(self, key: str) -> bool:
        """Run one step off the UI thread. Establishes a session first if needed."""
        if key == "run":
            for step in _PIPELINE:
                if not await self.run_step(step):
                    self.query_one(StepMenu).mark("run", False)
                    return False
            self.query_one(StepMenu).mark("run", True)
            return True

        if key == "establish" or self.session is None:
            if not await self._establish():
                return False
            if key == "establish":
                return True

        self._begin(key)
        try:
            if key == "provision":
                result = await asyncio.to_thread(cmd_provision, self.session, on_progress=self._progress)
            elif key == "dispatch":
                result = await asyncio.to_thread(cmd_dispatch_init, self.session, on_progress=self._progress)
            elif key == "report":
                result = await asyncio.to_thread(cmd_report, self.session)
            else:
                return False
            return self._record(key, result)
        finally:
            self.query_one(StatusBar).operation = ""

    async def _establish(self) -> bool:
        self._begin("establish")
        try:
            result = await asyncio.to_thread(cmd_establish, self.identity, on_progress=self._progress)
        finally:
            self.query_one(StatusBar).operation = ""
        if not self._record("establish", result):
            return False
        self.session = result.data["session"]
        status = self.query_one(StatusBar)
        status.payer = result.data.get("payer", "")
        status.balance = result.data.get("balance", 0)
        return True

    def _begin(self, key: str) -> None:
        self.query_one(StatusBar).operation = key
        self.query_one(LogPanel).step = key
        self.query_one(StepMenu).mark(key, None)

    def _progress(self, message: str, pct: float | None = None) -> None:
        self.call_from_thread(self.query_one(LogPanel).progress, message, pct)

    def _record(self, key: str, result: CommandResult) -> bool:
        self.last_result = result
        log = self.query_one(LogPanel)
        log.step = result.data.get("step", key) if not result.success else key
        log.outcome(result.success, result.message)
        self.query_one(StepMenu).mark(key, result.success)

        color = "#39ff14" if result.success else "#ff3366"
        lines = [f"[{color}]{escape(result.message)}[/]"]
        for name, value in result.data.items():
            if name in {"session", "raw"}:
                continue
            if name == "dump":
                lines.extend(f"  [#8892a4]{escape(line)}[/]" for line in value)
            elif name == "signature":
                lines.append(f"  [#8892a4]signature:[/] {escape(str(value))}")
                log.signature(str(value))
            elif name == "logs":
                log.program_logs(value)
            else:
                lines.append(f"  [#8892a4]{escape(name)}:[/] {escape(str(value))}")
        self.query_one("#result", Static).update("\n".join(lines))
        return result.success
