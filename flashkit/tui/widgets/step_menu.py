"""Pipeline step menu with a pass/fail marker per step."""

from __future__ import annotations

from dataclasses import dataclass

from rich.text import Text
from textual.app import ComposeResult
from textual.message import Message
from textual.widget import Widget
from textual.widgets import OptionList
from textual.widgets.option_list import Option

_MARKS = {
    None: ("·", "#8892a4"),
    True: ("✓", "#39ff14"),
    False: ("✗", "#ff3366"),
}


@dataclass
class StepItem:
    label: str
    key: str
    description: str = ""


class StepMenu(Widget):
    """Fires Selected with the step key on Enter."""

    DEFAULT_CSS = """
    StepMenu {
        height: auto;
        background: #111827;
    }
    """

    class Selected(Message):
        def __init__(self, key: str) -> None:
            super().__init__()
            self.key = key

    def __init__(self, steps: list[StepItem], **kwargs) -> None:
        super().__init__(**kwargs)
        self._steps = {step.key: step for step in steps}
        self.outcomes: dict[str, bool | None] = {}

    def _prompt(self, step: StepItem) -> Text:
        mark, color = _MARKS[self.outcomes.get(step.key)]
        return Text.assemble((mark, color), " ", step.label, (f"  {step.description}", "#8892a4"))

    def compose(self) -> ComposeResult:
        yield OptionList(*[Option(self._prompt(step), id=key) for key, step in self._steps.items()])

    def mark(self, key: str, ok: bool | None) -> None:
        step = self._steps.get(key)
        if step is None:
            return
        self.outcomes[key] = ok
        self.query_one(OptionList).replace_option_prompt(key, self._prompt(step))

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        if event.option.id:
            self.post_message(self.Selected(event.option.id))
