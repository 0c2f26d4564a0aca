# screens/step_select.py
from __future__ import annotations
from typing import Optional
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, ListItem, ListView, Static


class StepSelectScreen(ModalScreen[Optional[int]]):
    """Pick one step to run; completed steps are marked but may be re-run."""

    DEFAULT_CSS = """
    StepSelectScreen {
        align: center middle;
    }
    StepSelectScreen > Vertical {
        width: 96;
        height: auto;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }
    StepSelectScreen #step_buttons {
        height: 3;
        align: center middle;
    }
    """

    BINDINGS = [("escape", "cancel", "Back")]

    def compose(self) -> ComposeResult:
        app = self.app
        store = app.state_store()
        done_upto = store.resume_point(store.load())
        items = []
        for i, step in enumerate(app.registry):
            mark = "[green]✓[/green]" if i < done_upto else " "
            nxt = "  [yellow]← next[/yellow]" if i == done_upto else ""
            items.append(ListItem(Label(f"{mark} {step.display_name}{nxt}"), id=f"step_{i}"))
        with Vertical():
            yield Static("Select a step to run", classes="title")
            yield ListView(*items, id="step_list",
                           initial_index=min(done_upto, len(app.registry) - 1))
            with Horizontal(id="step_buttons"):
                yield Button("Run", id="btn_run", variant="primary")
                yield Button("Back", id="btn_back", variant="default")

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        self.dismiss(self.query_one("#step_list", ListView).index)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_run":
            self.dismiss(self.query_one("#step_list", ListView).index)
        else:
            self.dismiss(None)
