# tests/test_tui.py
"""
Headless Pilot tests for the installer TUI.

Step handlers are stubs and commands run in dry mode, so nothing here
touches the host. Engine actions run in a worker thread; the helpers below
wait for the dialogs that thread pushes.
"""
from __future__ import annotations

import pytest
from textual.widgets import Button, Checkbox, Input

from app import InstallerApp
from config import InstallerConfig, load_config, save_config
from conftest import FakeCommands, FakeLinks, make_registry
from engine.registry import StepId
from state import Role


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_app(tmp_path, handlers=None, count=2, config=None):
    config_path = tmp_path / "xdr_install.conf"
    save_config(config or InstallerConfig(enable_auto_reboot=False), config_path)
    return InstallerApp(
        config_path=config_path,
        state_file=tmp_path / "xdr_install.state",
        conflict_log=tmp_path / "rename_conflicts.log",
        registry=make_registry(handlers, count=count),
        links=FakeLinks({}),
        commands=FakeCommands(dry_run=True),
    )


def _screen_name(pilot) -> str:
    return type(pilot.app.screen).__name__


async def _wait_for(pilot, name: str, previous=None, tries: int = 50):
    """Pause until a screen of type `name` (other than `previous`) is on top."""
    for _ in range(tries):
        screen = pilot.app.screen
        if type(screen).__name__ == name and screen is not previous:
            return screen
        await pilot.pause(0.1)
    raise AssertionError(f"{name} never appeared (on {_screen_name(pilot)})")


async def _answer(pilot, button_id: str, previous=None):
    dialog = await _wait_for(pilot, "ConfirmDialog", previous)
    await pilot.click(f"#{button_id}")
    await pilot.pause(0.1)
    return dialog


# ---------------------------------------------------------------------------
# Main menu
# ---------------------------------------------------------------------------

async def test_main_menu_shows_progress(tmp_path):
    app = _make_app(tmp_path)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        assert _screen_name(pilot) == "MainMenuScreen"
        status = pilot.app.screen.status_text()
        assert "DRY-RUN" in status
        assert "Last completed: -" in status
        assert "01_hw_detect stub" in status
        assert "[0/2 done]" in status


async def test_auto_continue_runs_pending_steps(tmp_path):
    app = _make_app(tmp_path)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.click("#btn_auto")
        prev = await _answer(pilot, "btn_yes")            # auto proceed
        prev = await _answer(pilot, "btn_yes", prev)      # STEP 01
        await _answer(pilot, "btn_yes", prev)             # STEP 02
        menu = await _wait_for(pilot, "MainMenuScreen")
        for _ in range(30):
            if not menu.query_one("#btn_auto", Button).disabled:
                break
            await pilot.pause(0.1)
        assert not menu.query_one("#btn_auto", Button).disabled
        assert app.state_store().load().last_completed_step == "02_hwe_kernel"
        assert "(all steps completed)" in menu.status_text()


async def test_declining_a_step_keeps_progress(tmp_path):
    app = _make_app(tmp_path)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.click("#btn_auto")
        prev = await _answer(pilot, "btn_yes")
        await _answer(pilot, "btn_no", prev)
        await _wait_for(pilot, "MainMenuScreen")
        await pilot.pause(0.3)
        assert app.state_store().resume_point() == 0


async def test_reboot_exits_app(tmp_path):
    config = InstallerConfig(enable_auto_reboot=True, auto_reboot_after=["01_hw_detect"])
    app = _make_app(tmp_path, config=config)
    app.commands = FakeCommands(dry_run=False)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.click("#btn_auto")
        prev = await _answer(pilot, "btn_yes")
        await _answer(pilot, "btn_yes", prev)
        await _wait_for(pilot, "MessageDialog")          # "Auto Reboot" notice
        await pilot.click("#btn_ok")
        for _ in range(30):
            if app.return_value is not None:
                break
            await pilot.pause(0.1)
    assert app.return_value == "reboot"
    assert app.commands.executed == [["reboot"]]
    assert app.state_store().load().last_completed_step == "01_hw_detect"


# ---------------------------------------------------------------------------
# Step selection
# ---------------------------------------------------------------------------

async def test_step_select_back(tmp_path):
    app = _make_app(tmp_path)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.click("#btn_step")
        await pilot.pause(0.3)
        assert _screen_name(pilot) == "StepSelectScreen"
        await pilot.click("#btn_back")
        await pilot.pause(0.3)
        assert _screen_name(pilot) == "MainMenuScreen"


async def test_step_select_runs_chosen_step(tmp_path):
    ran = []
    handlers = {StepId.HWE_KERNEL: lambda ctx: ran.append(ctx.step_id) or 0}
    app = _make_app(tmp_path, handlers=handlers)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.press("2")
        await pilot.pause(0.3)
        assert _screen_name(pilot) == "StepSelectScreen"
        pilot.app.screen.query_one("#step_list").index = 1
        await pilot.pause(0.1)
        await pilot.click("#btn_run")
        await _answer(pilot, "btn_yes")
        await _wait_for(pilot, "MainMenuScreen")
        for _ in range(30):
            if ran:
                break
            await pilot.pause(0.1)
    assert ran == [StepId.HWE_KERNEL]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

async def test_config_rejects_invalid_memory(tmp_path):
    app = _make_app(tmp_path)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.click("#btn_config")
        await pilot.pause(0.3)
        assert _screen_name(pilot) == "ConfigScreen"
        pilot.app.screen.query_one("#inp_dl_mem", Input).value = "4"
        await pilot.click("#btn_save")
        await pilot.pause(0.3)
    assert load_config(app.config_path).dl_memory_gb == InstallerConfig().dl_memory_gb


async def test_config_saves_values(tmp_path):
    app = _make_app(tmp_path)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.click("#btn_config")
        await pilot.pause(0.3)
        screen = pilot.app.screen
        screen.query_one("#inp_dl_mem", Input).value = "200"
        screen.query_one("#inp_dp_version", Input).value = "6.2.0"
        screen.query_one("#inp_ntp", Input).value = "10.0.0.10 10.0.0.11"
        screen.query_one("#chk_dry_run", Checkbox).value = False
        await pilot.click("#btn_save")
        await pilot.pause(0.3)
    cfg = load_config(app.config_path)
    assert cfg.dl_memory_gb == 200
    assert cfg.dp_version == "6.2.0"
    assert cfg.ntp_servers == ["10.0.0.10", "10.0.0.11"]
    assert cfg.dry_run is False


async def test_config_reset_progress(tmp_path):
    app = _make_app(tmp_path)
    (tmp_path / "xdr_install.state").write_text(
        'LAST_COMPLETED_STEP="02_hwe_kernel"\nMGT_NIC_PCI="0000:03:00.0"\n'
    )
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.click("#btn_config")
        await pilot.pause(0.3)
        await pilot.click("#btn_reset")
        await _answer(pilot, "btn_yes")
        await pilot.pause(0.3)
        assert _screen_name(pilot) == "ConfigScreen"
    state = app.state_store().load()
    assert state.last_completed_step is None
    assert state.identities[Role.MANAGEMENT].pci_address == "0000:03:00.0"


# ---------------------------------------------------------------------------
# Help
# ---------------------------------------------------------------------------

async def test_usage_screen_escape(tmp_path):
    app = _make_app(tmp_path)
    async with app.run_test(headless=True, size=(120, 40)) as pilot:
        await pilot.pause(0.3)
        await pilot.press("5")
        await pilot.pause(0.3)
        assert _screen_name(pilot) == "UsageScreen"
        await pilot.press("escape")
        await pilot.pause(0.3)
        assert _screen_name(pilot) == "MainMenuScreen"
