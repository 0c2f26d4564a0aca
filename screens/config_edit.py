# screens/config_edit.py
from __future__ import annotations
from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.screen import Screen
from textual.widgets import Button, Checkbox, Footer, Input, Label, Static
from widgets.installer_header import InstallerHeader
from config import save_config
from errors import StateSaveError
from screens.dialogs import ConfirmDialog
from validators import (
    validate_hostname, validate_memory_gb, validate_step_ids, validate_version,
)
from logger import log


class ConfigScreen(Screen):
    """Edit installer configuration and reset step progress."""

    BINDINGS = [
        ("escape", "go_back", "Back"),
    ]

    def compose(self) -> ComposeResult:
        cfg = self.app.load_config()
        yield InstallerHeader()
        with VerticalScroll(id="form"):
            yield Static("Configuration", classes="title")
            yield Checkbox("Dry run (log commands, change nothing)", id="chk_dry_run", value=cfg.dry_run)
            yield Label("DP version (e.g. 6.2.1):")
            yield Input(value=cfg.dp_version, id="inp_dp_version")
            yield Label("ACPS base URL:")
            yield Input(value=cfg.acps_base_url, id="inp_acps_url")
            yield Label("ACPS username:")
            yield Input(value=cfg.acps_username, id="inp_acps_user")
            yield Label("ACPS password:")
            yield Input(value=cfg.acps_password, id="inp_acps_pass", password=True)
            yield Checkbox("Reboot automatically after selected steps", id="chk_auto_reboot",
                           value=cfg.enable_auto_reboot)
            yield Label("Reboot after step ids (space separated):")
            yield Input(value=" ".join(cfg.auto_reboot_after), id="inp_reboot_steps")
            yield Label("DL VM hostname / memory (GB):")
            with Horizontal(classes="pair"):
                yield Input(value=cfg.dl_hostname, id="inp_dl_host")
                yield Input(value=str(cfg.dl_memory_gb), id="inp_dl_mem")
            yield Label("DA VM hostname / memory (GB):")
            with Horizontal(classes="pair"):
                yield Input(value=cfg.da_hostname, id="inp_da_host")
                yield Input(value=str(cfg.da_memory_gb), id="inp_da_mem")
            yield Label("NTP servers (space separated):")
            yield Input(value=" ".join(cfg.ntp_servers), id="inp_ntp")
            yield Static("", id="err_msg")
            yield Static("", id="status_msg")
        with Horizontal(id="nav_buttons"):
            yield Button("← Back", id="btn_back", variant="default")
            yield Button("Reset step progress", id="btn_reset", variant="warning")
            yield Button("Save", id="btn_save", variant="primary")
        yield Footer()

    def _value(self, widget_id: str) -> str:
        return self.query_one(f"#{widget_id}", Input).value.strip()

    def _show_error(self, msg: str) -> None:
        self.query_one("#err_msg", Static).update(f"[red]{msg}[/red]")
        self.query_one("#status_msg", Static).update("")

    def _collect_and_validate(self) -> bool:
        known = [step.id.value for step in self.app.registry]
        checks = (
            validate_version(self._value("inp_dp_version")),
            validate_step_ids(self._value("inp_reboot_steps"), known),
            validate_hostname(self._value("inp_dl_host")),
            validate_hostname(self._value("inp_da_host")),
            validate_memory_gb(self._value("inp_dl_mem")),
            validate_memory_gb(self._value("inp_da_mem")),
        )
        for ok, msg in checks:
            if not ok:
                self._show_error(msg)
                return False
        if not self._value("inp_acps_url").startswith(("http://", "https://")):
            self._show_error("ACPS base URL must start with http:// or https://.")
            return False

        cfg = self.app.load_config()
        cfg.dry_run = self.query_one("#chk_dry_run", Checkbox).value
        cfg.dp_version = self._value("inp_dp_version")
        cfg.acps_base_url = self._value("inp_acps_url")
        cfg.acps_username = self._value("inp_acps_user")
        cfg.acps_password = self.query_one("#inp_acps_pass", Input).value
        cfg.enable_auto_reboot = self.query_one("#chk_auto_reboot", Checkbox).value
        cfg.auto_reboot_after = self._value("inp_reboot_steps").split()
        cfg.dl_hostname = self._value("inp_dl_host")
        cfg.da_hostname = self._value("inp_da_host")
        cfg.dl_memory_gb = int(self._value("inp_dl_mem"))
        cfg.da_memory_gb = int(self._value("inp_da_mem"))
        cfg.ntp_servers = self._value("inp_ntp").split()
        try:
            save_config(cfg, self.app.config_path)
        except OSError as e:
            log.error("Failed to save config: %s", e)
            self._show_error(f"Failed to save config: {e}")
            return False
        return True

    def action_go_back(self) -> None:
        self.app.pop_screen()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_back":
            self.app.pop_screen()
        elif event.button.id == "btn_save":
            if self._collect_and_validate():
                self.query_one("#err_msg", Static).update("")
                self.query_one("#status_msg", Static).update("[green]Configuration saved.[/green]")
        elif event.button.id == "btn_reset":
            self.app.push_screen(
                ConfirmDialog(
                    "Reset Step Progress",
                    "Forget which steps have completed? NIC identities are kept.\n"
                    "Auto-continue will start again from STEP 01.",
                    default_no=True,
                ),
                self._on_reset_answer,
            )

    def _on_reset_answer(self, confirmed: bool) -> None:
        if not confirmed:
            return
        try:
            self.app.state_store().reset_progress()
        except StateSaveError as e:
            self._show_error(str(e))
            return
        log.info("Step progress reset from configuration screen")
        self.query_one("#status_msg", Static).update("[green]Step progress reset.[/green]")
