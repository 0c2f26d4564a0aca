# app.py
from __future__ import annotations
from pathlib import Path
from typing import Optional
from textual.app import App
from command import CommandRunner
from config import InstallerConfig, load_config
from engine.prompts import Prompter
from engine.registry import StepRegistry
from engine.session import Session, open_session
from engine.state_store import ExecutionStateStore
from network.identity import LinkTable
from paths import CONFIG_FILE, CONFLICT_LOG, STATE_FILE
from steps.catalog import build_registry
from logger import log


class InstallerApp(App):
    """XDR hypervisor host installer."""

    TITLE = "XDR Installer"

    CSS = """
    Screen {
        background: $surface;
    }
    .title {
        text-style: bold;
        color: $accent;
        margin-bottom: 1;
    }
    #content {
        margin: 1 2;
    }
    #form {
        margin: 1 2;
    }
    #menu_buttons {
        height: auto;
        margin: 1 2;
    }
    #menu_buttons Button {
        width: 60;
        margin-bottom: 1;
    }
    #nav_buttons {
        dock: bottom;
        height: 3;
        align: center middle;
        margin: 1 2;
    }
    Button {
        margin: 0 1;
    }
    #err_msg {
        margin-top: 1;
        color: $error;
    }
    ListView {
        height: 20;
        border: solid $primary;
    }
    Input {
        margin-bottom: 1;
    }
    ProgressBar {
        margin: 1 0;
    }
    """

    def __init__(
        self,
        config_path: Path = CONFIG_FILE,
        state_file: Path = STATE_FILE,
        conflict_log: Path = CONFLICT_LOG,
        registry: Optional[StepRegistry] = None,
        links: Optional[LinkTable] = None,
        commands: Optional[CommandRunner] = None,
    ) -> None:
        super().__init__()
        self.config_path = Path(config_path)
        self.state_file = Path(state_file)
        self.conflict_log = Path(conflict_log)
        self.registry = registry or build_registry()
        self.links = links
        self.commands = commands
        log.info("InstallerApp started (config=%s, state=%s)", self.config_path, self.state_file)

    def load_config(self) -> InstallerConfig:
        return load_config(self.config_path)

    def state_store(self) -> ExecutionStateStore:
        return ExecutionStateStore(self.registry, self.state_file)

    def open_session(self, prompter: Prompter) -> Session:
        """Fresh config and state for one menu action."""
        config = self.load_config()
        return open_session(
            config,
            prompter,
            self.registry,
            config_path=self.config_path,
            state_file=self.state_file,
            conflict_log=self.conflict_log,
            commands=self.commands,
            links=self.links,
        )

    async def on_mount(self) -> None:
        from screens.main_menu import MainMenuScreen
        await self.push_screen(MainMenuScreen())
