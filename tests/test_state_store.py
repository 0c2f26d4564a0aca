# tests/test_state_store.py
from unittest.mock import patch

import pytest

from conftest import make_registry
from engine.registry import StepId
from engine.state_store import ExecutionStateStore
from errors import StateSaveError
from state import ExecutionState, HardwareIdentity, Role


def _store(tmp_path, count=13):
    return ExecutionStateStore(make_registry(count=count), tmp_path / "xdr_install.state",
                               clock=lambda: "2026-01-01 10:00:00")


def test_resume_after_nic_step(tmp_path):
    store = _store(tmp_path)
    (tmp_path / "xdr_install.state").write_text('LAST_COMPLETED_STEP="03_nic_ifupdown"\n')
    assert store.resume_point() == 3

def test_resume_missing_file_starts_at_zero(tmp_path):
    assert _store(tmp_path).resume_point() == 0

def test_resume_unknown_step_starts_at_zero(tmp_path):
    store = _store(tmp_path)
    assert store.resume_point(ExecutionState(last_completed_step="42_removed")) == 0

def test_resume_after_last_step_is_end(tmp_path):
    store = _store(tmp_path)
    assert store.resume_point(ExecutionState(last_completed_step="13_install_dp_cli")) == 13

def test_save_then_load(tmp_path):
    store = _store(tmp_path)
    state = ExecutionState()
    state.identities[Role.CLUSTER] = HardwareIdentity("eno2", "0000:04:00.0", "aa:aa:aa:aa:aa:02", "cltr0")
    store.save(StepId.NTPSEC, state)

    loaded = store.load()
    assert loaded.last_completed_step == "06_ntpsec"
    assert loaded.last_run_time == "2026-01-01 10:00:00"
    assert loaded.identities[Role.CLUSTER] == state.identities[Role.CLUSTER]
    assert loaded.identities[Role.MANAGEMENT].is_empty
    text = (tmp_path / "xdr_install.state").read_text()
    assert 'CLTR0_NIC_PCI="0000:04:00.0"' in text
    assert 'CLTR0_NIC_EFFECTIVE="cltr0"' in text

def test_failed_save_raises_and_keeps_previous_file(tmp_path):
    store = _store(tmp_path)
    state = ExecutionState()
    store.save(StepId.HW_DETECT, state)
    with patch("kvfile.os.replace", side_effect=OSError("read-only filesystem")):
        with pytest.raises(StateSaveError):
            store.save(StepId.HWE_KERNEL, state)
    assert store.load().last_completed_step == "01_hw_detect"
    # In-memory progress is rolled back with the file.
    assert state.last_completed_step == "01_hw_detect"

def test_save_identities_keeps_progress(tmp_path):
    store = _store(tmp_path)
    state = ExecutionState()
    store.save(StepId.KVM_LIBVIRT, state)
    state.identities[Role.MANAGEMENT] = HardwareIdentity("eno1", "0000:03:00.0", None, "eno1")
    state.last_completed_step = "12_sriov_cpu_affinity"
    store.save_identities(state)

    loaded = store.load()
    assert loaded.last_completed_step == "04_kvm_libvirt"
    assert loaded.identities[Role.MANAGEMENT].pci_address == "0000:03:00.0"

def test_reset_progress_keeps_identities(tmp_path):
    store = _store(tmp_path)
    state = ExecutionState()
    state.identities[Role.HOST_ACCESS] = HardwareIdentity("ens5f0", "0000:5e:00.0", None, "hostmgmt")
    store.save(StepId.LVM_STORAGE, state)

    reset = store.reset_progress()
    assert reset.last_completed_step is None
    assert store.resume_point() == 0
    assert store.load().identities[Role.HOST_ACCESS].effective_name == "hostmgmt"

def test_corrupt_file_treated_as_nothing_completed(tmp_path):
    (tmp_path / "xdr_install.state").write_bytes(b"\xff\xfeLAST")
    assert _store(tmp_path).resume_point() == 0
