# screens/main_menu.py
from __future__ import annotations
from typing import Callable, Optional
from textual import work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import Screen
from textual.widgets import Button, Footer, Static
from widgets.installer_header import InstallerHeader
from engine.reboot import RebootInitiated
from engine.session import Session
from errors import StateSaveError
from screens.prompter import TuiPrompter
from logger import log

MENU = (
    ("btn_auto", "1. Auto-continue from the next pending step"),
    ("btn_step", "2. Select and run a single step"),
    ("btn_config", "3. Configuration"),
    ("btn_validate", "4. Validate installation"),
    ("btn_help", "5. Usage guide"),
    ("btn_exit", "6. Exit"),
)


class MainMenuScreen(Screen):
    """Main menu; engine actions run in a worker thread so dialogs stay responsive."""

    BINDINGS = [
        ("1", "menu('btn_auto')", "Auto"),
        ("2", "menu('btn_step')", "Step"),
        ("3", "menu('btn_config')", "Config"),
        ("4", "menu('btn_validate')", "Validate"),
        ("5", "menu('btn_help')", "Help"),
        ("6", "menu('btn_exit')", "Exit"),
    ]

    def compose(self) -> ComposeResult:
        yield InstallerHeader()
        with Vertical(id="content"):
            yield Static("Main Menu", classes="title")
            yield Static("", id="status")
            with Vertical(id="menu_buttons"):
                for button_id, label in MENU:
                    yield Button(label, id=button_id,
                                 variant="primary" if button_id == "btn_auto" else "default")
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_status()

    def on_screen_resume(self) -> None:
        self.refresh_status()

    def status_text(self) -> str:
        app = self.app
        config = app.load_config()
        store = app.state_store()
        state = store.load()
        nxt = store.resume_point(state)
        total = len(app.registry)
        next_label = app.registry[nxt].display_name if nxt < total else "(all steps completed)"
        mode = "[yellow]DRY-RUN[/yellow]" if config.dry_run else "[red]LIVE[/red]"
        return (
            f"Mode: {mode}   DP version: {config.dp_version}\n"
            f"Last completed: {state.last_completed_step or '-'}"
            f"  ({state.last_run_time or 'never'})\n"
            f"Next step: {next_label}   [{min(nxt, total)}/{total} done]"
        )

    def refresh_status(self) -> None:
        self.query_one("#status", Static).update(self.status_text())

    def _set_busy(self, busy: bool) -> None:
        for button_id, _ in MENU:
            self.query_one(f"#{button_id}", Button).disabled = busy

    def action_menu(self, button_id: str) -> None:
        button = self.query_one(f"#{button_id}", Button)
        if not button.disabled:
            button.press()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id
        if bid == "btn_auto":
            self.run_engine(lambda s: s.controller.run_all())
        elif bid == "btn_step":
            from screens.step_select import StepSelectScreen
            self.app.push_screen(StepSelectScreen(), self._on_step_selected)
        elif bid == "btn_config":
            from screens.config_edit import ConfigScreen
            self.app.push_screen(ConfigScreen())
        elif bid == "btn_validate":
            from screens.validation import ValidationScreen
            self.app.push_screen(ValidationScreen())
        elif bid == "btn_help":
            from screens.usage_help import UsageScreen
            self.app.push_screen(UsageScreen())
        elif bid == "btn_exit":
            log.info("Operator exited from main menu")
            self.app.exit()

    def _on_step_selected(self, index: Optional[int]) -> None:
        if index is not None:
            self.run_engine(lambda s: s.controller.run_single(index))

    def run_engine(self, action: Callable[[Session], object]) -> None:
        self._set_busy(True)
        self._engine_worker(action)

    @work(thread=True, exclusive=True, group="engine")
    def _engine_worker(self, action: Callable[[Session], object]) -> None:
        app = self.app
        prompter = TuiPrompter(app)
        try:
            session = app.open_session(prompter)
            action(session)
        except RebootInitiated as e:
            log.info("Exiting for reboot after %s", e)
            app.call_from_thread(app.exit, "reboot")
            return
        except StateSaveError as e:
            log.critical("Could not persist installer state: %s", e)
            prompter.notify(
                "State Save Failed",
                f"The installer state could not be saved:\n\n{e}\n\n"
                "The step may have completed, but progress was not recorded.\n"
                "Fix the problem (disk full? permissions?) and restart the installer.",
            )
            app.call_from_thread(app.exit, "state-error")
            return
        app.call_from_thread(self._engine_finished)

    def _engine_finished(self) -> None:
        self._set_busy(False)
        self.refresh_status()
