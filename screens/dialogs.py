# screens/dialogs.py
"""Modal dialogs used by the engine's prompter (confirm, message, input, choices)."""
from __future__ import annotations
from typing import List, Optional, Sequence, Tuple
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Select, SelectionList, Static
from textual.widgets.selection_list import Selection

DIALOG_CSS = """
{name} {{
    align: center middle;
}}
{name} > Vertical {{
    width: 90;
    max-height: 90%;
    height: auto;
    border: thick $primary;
    background: $surface;
    padding: 1 2;
}}
{name} .dialog_title {{
    text-style: bold;
    color: $accent;
    margin-bottom: 1;
}}
{name} .dialog_body {{
    max-height: 24;
    height: auto;
}}
{name} .dialog_buttons {{
    height: 3;
    align: center middle;
    margin-top: 1;
}}
{name} Button {{
    margin: 0 1;
}}
"""


class ConfirmDialog(ModalScreen[bool]):
    """Yes/No question. Escape answers No."""

    DEFAULT_CSS = DIALOG_CSS.format(name="ConfirmDialog")
    BINDINGS = [("escape", "answer_no", "No")]

    def __init__(self, title: str, message: str, default_no: bool = False) -> None:
        super().__init__()
        self.title_text = title
        self.message = message
        self.default_no = default_no

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(self.title_text, classes="dialog_title")
            with VerticalScroll(classes="dialog_body"):
                yield Static(self.message, markup=False)
            with Horizontal(classes="dialog_buttons"):
                yield Button("Yes", id="btn_yes", variant="primary")
                yield Button("No", id="btn_no", variant="default")

    def on_mount(self) -> None:
        self.query_one("#btn_no" if self.default_no else "#btn_yes", Button).focus()

    def action_answer_no(self) -> None:
        self.dismiss(False)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "btn_yes")


class MessageDialog(ModalScreen[None]):
    DEFAULT_CSS = DIALOG_CSS.format(name="MessageDialog")
    BINDINGS = [("escape", "close", "Close")]

    def __init__(self, title: str, message: str) -> None:
        super().__init__()
        self.title_text = title
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(self.title_text, classes="dialog_title")
            with VerticalScroll(classes="dialog_body"):
                yield Static(self.message, markup=False)
            with Horizontal(classes="dialog_buttons"):
                yield Button("OK", id="btn_ok", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#btn_ok", Button).focus()

    def action_close(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(None)


class InputDialog(ModalScreen[Optional[str]]):
    """Single-line text input; Cancel/Escape returns None."""

    DEFAULT_CSS = DIALOG_CSS.format(name="InputDialog")
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, message: str, default: str = "", password: bool = False) -> None:
        super().__init__()
        self.title_text = title
        self.message = message
        self.default = default
        self.password = password

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(self.title_text, classes="dialog_title")
            yield Static(self.message, markup=False)
            yield Input(value=self.default, password=self.password, id="inp_value")
            with Horizontal(classes="dialog_buttons"):
                yield Button("OK", id="btn_ok", variant="primary")
                yield Button("Cancel", id="btn_cancel", variant="default")

    def on_mount(self) -> None:
        self.query_one("#inp_value", Input).focus()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_ok":
            self.dismiss(self.query_one("#inp_value", Input).value)
        else:
            self.dismiss(None)


class ChoiceDialog(ModalScreen[Optional[str]]):
    """Pick one value from (label, value) options."""

    DEFAULT_CSS = DIALOG_CSS.format(name="ChoiceDialog")
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, message: str, options: Sequence[Tuple[str, str]]) -> None:
        super().__init__()
        self.title_text = title
        self.message = message
        self.options = list(options)

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(self.title_text, classes="dialog_title")
            yield Static(self.message, markup=False)
            yield Select(options=self.options, id="sel_choice", prompt="Choose…")
            yield Static("", id="err_msg")
            with Horizontal(classes="dialog_buttons"):
                yield Button("OK", id="btn_ok", variant="primary")
                yield Button("Cancel", id="btn_cancel", variant="default")

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id != "btn_ok":
            self.dismiss(None)
            return
        sel = self.query_one("#sel_choice", Select)
        if sel.value is Select.BLANK:
            self.query_one("#err_msg", Static).update("[red]Please choose an option.[/red]")
            return
        self.dismiss(str(sel.value))


class MultiChoiceDialog(ModalScreen[Optional[List[str]]]):
    """Toggle any number of options with Space; OK returns the selected values."""

    DEFAULT_CSS = DIALOG_CSS.format(name="MultiChoiceDialog")
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, message: str, options: Sequence[Tuple[str, str]]) -> None:
        super().__init__()
        self.title_text = title
        self.message = message
        self.options = list(options)

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(self.title_text, classes="dialog_title")
            yield Static(self.message, markup=False)
            yield SelectionList(
                *[Selection(label, value, initial_state=False) for label, value in self.options],
                id="sel_many",
            )
            with Horizontal(classes="dialog_buttons"):
                yield Button("OK", id="btn_ok", variant="primary")
                yield Button("Cancel", id="btn_cancel", variant="default")

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_ok":
            self.dismiss(list(self.query_one("#sel_many", SelectionList).selected))
        else:
            self.dismiss(None)
