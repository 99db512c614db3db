"""Pipeline log. Each line is tagged with the step that produced it."""

from __future__ import annotations

from rich.markup import escape
from textual.widgets import RichLog

_STEP_COLORS = {
    "establish": "#00ffcc",
    "provision": "#ff00aa",
    "dispatch": "#ffaa00",
    "report": "#8892a4",
}


class LogPanel(RichLog):
    DEFAULT_CSS = """
    LogPanel {
        background: #0a0e17;
        border: solid #1a3a4a;
        padding: 0 1;
        min-height: 6;
        max-height: 50%;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(highlight=False, markup=True, wrap=True, **kwargs)
        self.step = ""

    def _tag(self) -> str:
        if not self.step:
            return ""
        color = _STEP_COLORS.get(self.step.split(":", 1)[0], "#8892a4")
        return f"[{color}]{escape(self.step):<10}[/] "

    def progress(self, message: str, pct: float | None = None) -> None:
        suffix = f" [dim]{pct:.0%}[/]" if pct is not None else ""
        self.write(f"{self._tag()}{escape(message)}{suffix}")

    def outcome(self, ok: bool, message: str) -> None:
        mark = "[#39ff14]ok[/]" if ok else "[#ff3366]failed[/]"
        self.write(f"{self._tag()}{mark} {escape(message)}")

    def signature(self, signature: str) -> None:
        self.write(f"{self._tag()}[#00ffcc]tx {escape(signature)}[/]")

    def program_logs(self, lines: list[str]) -> None:
        for line in lines:
            self.write(f"{self._tag()}[dim]{escape(line)}[/]")
