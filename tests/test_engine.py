# tests/test_engine.py
"""
Step engine: registry, version gate, runner, reboot and auto-continue.

Handlers are stubs; nothing here runs a host command.
"""
import pytest

from conftest import FakeCommands, FakeLinks, FakePrompter, make_registry
from config import InstallerConfig
from engine.reboot import RebootCoordinator, RebootInitiated
from engine.registry import StepDescriptor, StepId, StepRegistry
from engine.results import Canceled, Done, Failed, classify
from engine.session import open_session
from engine.version_gate import compare_versions, parse_version, select_variant
from errors import ConflictError, OperatorCancelled, StateSaveError, StepNotFound


# ---------------------------------------------------------------------------
# Registry / results / version gate
# ---------------------------------------------------------------------------

def test_registry_order_and_lookup():
    reg = make_registry()
    assert len(reg) == 13
    assert reg[0].id is StepId.HW_DETECT
    assert reg.index_of("05_kernel_tuning") == 4
    assert reg.index_of(StepId.INSTALL_DP_CLI) == 12
    assert reg.find("nope") is None
    assert reg.find(None) is None
    with pytest.raises(StepNotFound):
        reg.index_of("nope")

def test_registry_rejects_duplicates():
    step = StepDescriptor(StepId.HW_DETECT, "x", lambda ctx: 0)
    with pytest.raises(ValueError):
        StepRegistry([step, step])

def test_catalog_has_every_step_in_order():
    from steps.catalog import build_registry
    reg = build_registry()
    assert [s.id for s in reg] == list(StepId)
    assert reg[reg.index_of(StepId.DP_DOWNLOAD)].legacy_handler is not None

@pytest.mark.parametrize("code,expected", [
    (0, Done()), (2, Canceled("canceled by operator")), (1, Failed(1, "handler returned 1")),
])
def test_classify(code, expected):
    assert classify(code) == expected

def test_classify_none_is_failure():
    assert isinstance(classify(None), Failed)

def test_parse_version():
    assert parse_version("6.10.0") == (6, 10, 0)
    assert parse_version("v6.2.1-rc1") == (6, 2, 1)

@pytest.mark.parametrize("version,variant", [
    ("6.2.0", "legacy"), ("6.1.9", "legacy"), ("6.2.1", "new"), ("6.10.0", "new"), ("7", "new"),
])
def test_select_variant_cutover(version, variant):
    assert select_variant(version, "legacy", "new") == variant

def test_compare_versions_pads_missing_parts():
    assert compare_versions("6.2", "6.2.0") == 0
    assert compare_versions("6.10", "6.9.9") == 1


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def _session(tmp_path, handlers=None, prompter=None, config=None, commands=None):
    config = config or InstallerConfig(enable_auto_reboot=False)
    return open_session(
        config,
        prompter or FakePrompter(),
        make_registry(handlers),
        config_path=tmp_path / "xdr_install.conf",
        state_file=tmp_path / "xdr_install.state",
        conflict_log=tmp_path / "rename_conflicts.log",
        commands=commands or FakeCommands(dry_run=True),
        links=FakeLinks({}),
    )

def test_success_persists_progress(tmp_path):
    s = _session(tmp_path)
    assert s.runner.run(0) == Done()
    assert s.store.load().last_completed_step == "01_hw_detect"
    assert s.store.resume_point() == 1

def test_declined_confirmation_skips_handler(tmp_path):
    called = []
    s = _session(tmp_path, {StepId.HW_DETECT: lambda ctx: called.append(1) or 0},
                 prompter=FakePrompter(confirms=[False]))
    assert isinstance(s.runner.run(0), Canceled)
    assert called == []
    assert s.store.load().last_completed_step is None

def test_canceled_handler_does_not_persist(tmp_path):
    s = _session(tmp_path, {StepId.HW_DETECT: lambda ctx: 2})
    assert isinstance(s.runner.run(0), Canceled)
    assert s.store.load().last_completed_step is None

def test_operator_cancelled_is_canceled(tmp_path):
    def handler(ctx):
        raise OperatorCancelled("wipe declined")
    s = _session(tmp_path, {StepId.HW_DETECT: handler})
    result = s.runner.run(0)
    assert result == Canceled("wipe declined")

def test_installer_error_is_failed_and_notified(tmp_path):
    def handler(ctx):
        raise ConflictError("same NIC twice")
    prompter = FakePrompter()
    s = _session(tmp_path, {StepId.HW_DETECT: handler}, prompter=prompter)
    result = s.runner.run(0)
    assert isinstance(result, Failed)
    assert "same NIC twice" in result.detail
    assert "STEP Failed - 01_hw_detect" in prompter.titles("notify")
    assert s.store.load().last_completed_step is None

def test_unexpected_exception_is_failed(tmp_path):
    def handler(ctx):
        raise PermissionError(13, "Permission denied", "/etc/netplan/01-xdr.yaml")
    prompter = FakePrompter()
    s = _session(tmp_path, {StepId.HW_DETECT: handler}, prompter=prompter)
    result = s.runner.run(0)
    assert isinstance(result, Failed)
    assert "PermissionError" in result.detail
    assert "STEP Failed - 01_hw_detect" in prompter.titles("notify")
    assert s.store.load().last_completed_step is None

def test_auto_continue_survives_unexpected_exception(tmp_path):
    def handler(ctx):
        raise ValueError("bad sysfs value")
    s = _session(tmp_path, {StepId.HWE_KERNEL: handler})
    executed = s.controller.run_all()
    assert [sid for sid, _ in executed] == [StepId.HW_DETECT, StepId.HWE_KERNEL]
    assert isinstance(executed[-1][1], Failed)
    assert s.store.resume_point() == 1

def test_state_save_error_from_handler_propagates(tmp_path):
    def handler(ctx):
        raise StateSaveError("disk full")
    s = _session(tmp_path, {StepId.HW_DETECT: handler})
    with pytest.raises(StateSaveError):
        s.runner.run(0)

def test_nonzero_code_is_failed(tmp_path):
    s = _session(tmp_path, {StepId.HW_DETECT: lambda ctx: 7})
    assert s.runner.run(0) == Failed(7, "handler returned 7")

def test_rerun_of_earlier_step_moves_progress_back(tmp_path):
    s = _session(tmp_path)
    s.runner.run(4)
    s.runner.run(1)
    assert s.store.load().last_completed_step == "02_hwe_kernel"

def test_version_gate_selects_legacy_handler(tmp_path):
    seen = []
    reg = StepRegistry([StepDescriptor(
        StepId.DP_DOWNLOAD, "download",
        handler=lambda ctx: seen.append("new") or 0,
        legacy_handler=lambda ctx: seen.append("legacy") or 0,
    )])
    for version in ("6.2.0", "6.2.1"):
        s = open_session(InstallerConfig(dp_version=version, enable_auto_reboot=False),
                         FakePrompter(), reg,
                         config_path=tmp_path / "c.conf", state_file=tmp_path / "s.state",
                         conflict_log=tmp_path / "r.log", commands=FakeCommands(), links=FakeLinks({}))
        s.runner.run(0)
    assert seen == ["legacy", "new"]

def test_state_save_error_propagates(tmp_path):
    s = _session(tmp_path)
    s.store.path = tmp_path / "state-is-a-dir"
    s.store.path.mkdir()
    with pytest.raises(StateSaveError):
        s.runner.run(0)


# ---------------------------------------------------------------------------
# Reboot
# ---------------------------------------------------------------------------

def test_reboot_only_for_listed_steps():
    cfg = InstallerConfig(enable_auto_reboot=True, auto_reboot_after=["03_nic_ifupdown"])
    rc = RebootCoordinator(cfg, FakeCommands(dry_run=False), FakePrompter())
    assert rc.should_reboot(StepId.NIC_IFUPDOWN)
    assert not rc.should_reboot(StepId.KERNEL_TUNING)
    assert rc.after_step(StepId.KERNEL_TUNING) is False

def test_reboot_disabled():
    cfg = InstallerConfig(enable_auto_reboot=False)
    assert not RebootCoordinator(cfg, FakeCommands(), FakePrompter()).should_reboot("03_nic_ifupdown")

def test_reboot_dry_run_does_not_reboot():
    commands = FakeCommands(dry_run=True)
    rc = RebootCoordinator(InstallerConfig(), commands, FakePrompter())
    assert rc.after_step(StepId.NIC_IFUPDOWN, "NIC") is False
    assert commands.executed == []

def test_reboot_raises_after_command():
    commands = FakeCommands(dry_run=False)
    rc = RebootCoordinator(InstallerConfig(), commands, FakePrompter())
    with pytest.raises(RebootInitiated):
        rc.after_step(StepId.NIC_IFUPDOWN, "NIC")
    assert commands.executed == [["reboot"]]

def test_reboot_failure_is_reported_not_raised():
    commands = FakeCommands(dry_run=False, responses={("reboot",): (1, "")})
    prompter = FakePrompter()
    rc = RebootCoordinator(InstallerConfig(), commands, prompter)
    assert rc.after_step(StepId.NIC_IFUPDOWN) is False
    assert "Auto Reboot Failed" in prompter.titles("notify")

def test_reboot_happens_after_state_is_saved(tmp_path):
    commands = FakeCommands(dry_run=False)
    s = _session(tmp_path, config=InstallerConfig(enable_auto_reboot=True), commands=commands)
    with pytest.raises(RebootInitiated):
        s.runner.run(2)
    assert s.store.load().last_completed_step == "03_nic_ifupdown"


# ---------------------------------------------------------------------------
# Auto-continue
# ---------------------------------------------------------------------------

def test_auto_continue_resumes_and_runs_to_end(tmp_path):
    s = _session(tmp_path)
    s.store.save(StepId.NIC_IFUPDOWN, s.state)
    executed = s.controller.run_all()
    assert [sid for sid, _ in executed] == list(StepId)[3:]
    assert s.store.resume_point() == 13

def test_auto_continue_stops_at_failure(tmp_path):
    prompter = FakePrompter()
    s = _session(tmp_path, {StepId.NTPSEC: lambda ctx: 1}, prompter=prompter)
    executed = s.controller.run_all()
    assert executed[-1] == (StepId.NTPSEC, Failed(1, "handler returned 1"))
    assert len(executed) == 6
    assert s.store.load().last_completed_step == "05_kernel_tuning"
    assert "Automatic execution stopped" in prompter.titles("notify")

def test_auto_continue_stops_at_cancel(tmp_path):
    s = _session(tmp_path, {StepId.HWE_KERNEL: lambda ctx: 2})
    executed = s.controller.run_all()
    assert [sid for sid, _ in executed] == [StepId.HW_DETECT, StepId.HWE_KERNEL]
    assert s.store.resume_point() == 1

def test_auto_continue_declined(tmp_path):
    s = _session(tmp_path, prompter=FakePrompter(confirms=[False]))
    assert s.controller.run_all() == []
    assert s.store.resume_point() == 0

def test_auto_continue_when_everything_done(tmp_path):
    prompter = FakePrompter()
    s = _session(tmp_path, prompter=prompter)
    s.store.save(StepId.INSTALL_DP_CLI, s.state)
    assert s.controller.run_all() == []
    assert prompter.titles("confirm") == []
