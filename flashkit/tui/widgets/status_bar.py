"""Bottom bar with the endpoint, payer and running step."""

from __future__ import annotations

from rich.markup import escape
from textual.app import ComposeResult
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.widget import Widget
from textual.widgets import Static

from ...constants import LAMPORTS_PER_SOL


class StatusBar(Widget):
    DEFAULT_CSS = """
    StatusBar {
        dock: bottom;
        height: 1;
        background: #111827;
        layout: horizontal;
        padding: 0 2;
    }
    StatusBar .endpoint-label {
        color: #00ffcc;
        text-style: bold;
        width: auto;
        padding-right: 2;
    }
    StatusBar .payer-label {
        color: #ff00aa;
        width: 1fr;
    }
    StatusBar .op-label {
        color: #ffaa00;
        width: auto;
    }
    """

    endpoint: reactive[str] = reactive("")
    payer: reactive[str] = reactive("")
    balance: reactive[int] = reactive(0)
    operation: reactive[str] = reactive("")

    def compose(self) -> ComposeResult:
        yield Static("", classes="endpoint-label", id="sb-endpoint")
        yield Static("", classes="payer-label", id="sb-payer")
        yield Static("", classes="op-label", id="sb-op")

    def watch_endpoint(self, value: str) -> None:
        self._update("#sb-endpoint", escape(f"[{value}]") if value else "")

    def watch_payer(self, value: str) -> None:
        self._show_payer()

    def watch_balance(self, value: int) -> None:
        self._show_payer()

    def watch_operation(self, value: str) -> None:
        self._update("#sb-op", escape(f"running {value}") if value else "")

    def _show_payer(self) -> None:
        if not self.payer:
            self._update("#sb-payer", "")
            return
        sol = self.balance / LAMPORTS_PER_SOL
        self._update("#sb-payer", escape(f"{self.payer}  {sol:.4f} SOL"))

    def _update(self, selector: str, text: str) -> None:
        try:
            self.query_one(selector, Static).update(text)
        except NoMatches:
            pass
