# screens/usage_help.py
from __future__ import annotations
from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.screen import Screen
from textual.widgets import Button, Footer, Markdown
from widgets.installer_header import InstallerHeader
from paths import CONFIG_FILE, CONFLICT_LOG, LOG_FILE, STATE_FILE

USAGE = f"""
# Using the installer

Steps run in order and each one asks for confirmation first. Progress is
saved after every successful step, so the installer can be restarted at
any time (including after a reboot) and **Auto-continue** picks up at the
next pending step.

* **Auto-continue** runs the remaining steps one after another and stops at
  the first step that fails or that you cancel.
* **Select and run a single step** re-runs any step, including completed ones.
* **Configuration** holds the DP version, ACPS credentials, reboot policy and
  VM sizing. *Reset step progress* forgets completed steps but keeps the
  NIC selection.
* **Validate installation** checks KVM, libvirt, NIC names, kernel tuning and
  the DL/DA VMs.

## Dry run

With *Dry run* enabled (the default) every command is logged as
`[DRY-RUN] ...` and nothing on the host is changed. Turn it off in
Configuration before the real installation.

## Reboots

After the steps listed in *Reboot after step ids* (by default
`03_nic_ifupdown` and `05_kernel_tuning`) the host reboots. Start the
installer again and choose Auto-continue.

## NIC names

STEP 01 records the PCI address and MAC of the mgt, cltr0 and hostmgmt NICs.
STEP 03 pins those names with udev rules, so later steps find the right
device even when the kernel names change. An interface already holding one of
those names is moved to `xdrtmp0`..`xdrtmp7` and the move is recorded in the
conflict log.

## Files

| File | Path |
|---|---|
| Configuration | `{CONFIG_FILE}` |
| Progress state | `{STATE_FILE}` |
| Log | `{LOG_FILE}` |
| Rename conflicts | `{CONFLICT_LOG}` |
"""


class UsageScreen(Screen):
    BINDINGS = [
        ("escape", "go_back", "Back"),
    ]

    def compose(self) -> ComposeResult:
        yield InstallerHeader()
        with VerticalScroll(id="content"):
            yield Markdown(USAGE, id="usage")
        with Horizontal(id="nav_buttons"):
            yield Button("← Back", id="btn_back", variant="default")
        yield Footer()

    def action_go_back(self) -> None:
        self.app.pop_screen()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn_back":
            self.app.pop_screen()
