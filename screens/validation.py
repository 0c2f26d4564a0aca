# screens/validation.py
from __future__ import annotations
import asyncio
from typing import List
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import Screen
from textual.widgets import Button, Footer, Label, ListItem, ListView, ProgressBar, Static
from widgets.installer_header import InstallerHeader
from network.checks import CheckResult, build_check_matrix, run_all_checks
from logger import log


class ValidationScreen(Screen):
    """Runs the host validation checks concurrently and lists the results."""

    BINDINGS = [
        ("escape", "go_back", "Back"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._results: List[CheckResult] = []

    def compose(self) -> ComposeResult:
        yield InstallerHeader()
        with Vertical(id="content"):
            yield Static("Installation Validation", classes="title")
            yield Static("Running checks…", id="status_msg")
            yield ProgressBar(id="check_bar", show_eta=False)
            yield ListView(id="results_list")
        with Horizontal(id="nav_buttons"):
            yield Button("← Back", id="btn_back", variant="default")
            yield Button("Re-run", id="btn_rerun", variant="primary", disabled=True)
        yield Footer()

    async def on_mount(self) -> None:
        asyncio.create_task(self._run_checks())

    async def _run_checks(self) -> None:
        checks = build_check_matrix(self.app.load_config())
        bar = self.query_one("#check_bar", ProgressBar)
        bar.update(total=len(checks), progress=0)

        async def progress_cb(done: int, total: int) -> None:
            bar.update(progress=done)

        self._results = await run_all_checks(checks, timeout=10, progress_callback=progress_cb)

        results_list = self.query_one("#results_list", ListView)
        await results_list.clear()
        for r in sorted(self._results, key=lambda r: r.passed):
            icon = "[green]✓[/green]" if r.passed else "[red]✗[/red]"
            detail = f"  ({r.error})" if not r.passed else ""
            await results_list.append(ListItem(Label(f"{icon} {r.label} [dim]{r.target}[/dim]{detail}")))

        passed = sum(1 for r in self._results if r.passed)
        log.info("Validation: %d/%d checks passed", passed, len(self._results))
        colour = "green" if passed == len(self._results) else "yellow"
        self.query_one("#status_msg", Static).update(
            f"[{colour}]{passed}/{len(self._results)} checks passed.[/{colour}]"
        )
        self.query_one("#btn_rerun", Button).disabled = False

    def action_go_back(self) -> None:
        self.app.pop_screen()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_back":
            self.app.pop_screen()
        elif event.button.id == "btn_rerun":
            event.button.disabled = True
            self.query_one("#status_msg", Static).update("Running checks…")
            asyncio.create_task(self._run_checks())
