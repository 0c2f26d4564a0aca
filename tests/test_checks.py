# tests/test_checks.py
import pytest
import sys
from config import InstallerConfig
from network.checks import (
    CheckResult, build_check_matrix, check_command, check_path, check_value, run_all_checks,
)

def test_check_result_str():
    ok = CheckResult(label="KVM device", target="/dev/kvm", passed=True)
    bad = CheckResult(label="KSM disabled", target="/sys/kernel/mm/ksm/run", passed=False, error="is 1")
    assert "PASS" in str(ok)
    assert "FAIL (is 1)" in str(bad)
    assert bad.status_icon == "✗"

def test_matrix_covers_roles_and_vms():
    checks = build_check_matrix(InstallerConfig(dl_hostname="dl1", da_hostname="da1"))
    labels = [c["label"] for c in checks]
    assert "KVM device" in labels
    assert any("(cltr0)" in l for l in labels)
    vm_checks = [c for c in checks if c["type"] == "command" and c["argv"][:2] == ["virsh", "domstate"]]
    assert [c["argv"][2] for c in vm_checks] == ["dl1", "da1"]
    assert all(c["type"] in ("path", "value", "command") for c in checks)

async def test_check_path(tmp_path):
    assert (await check_path(str(tmp_path), label="dir")).passed
    missing = await check_path(str(tmp_path / "nope"), label="missing")
    assert not missing.passed and missing.error == "missing"

async def test_check_value(tmp_path):
    f = tmp_path / "min_free_kbytes"
    f.write_text("1048576\n")
    assert (await check_value(str(f), "1048576", label="v")).passed
    f.write_text("65536\n")
    r = await check_value(str(f), "1048576", label="v")
    assert not r.passed and "65536" in r.error
    assert (await check_value(str(tmp_path / "nope"), "1", label="v")).error == "unreadable"

async def test_check_command_expect():
    r = await check_command([sys.executable, "-c", "print('active')"], label="svc", expect="active")
    assert r.passed
    r = await check_command([sys.executable, "-c", "print('inactive')"], label="svc", expect="active")
    assert not r.passed

async def test_check_command_exit_code():
    r = await check_command([sys.executable, "-c", "raise SystemExit(3)"], label="x")
    assert not r.passed and r.error == "exit 3"

async def test_check_command_missing_binary():
    r = await check_command(["/nonexistent/xdr-binary"], label="x")
    assert not r.passed

async def test_check_command_timeout():
    r = await check_command([sys.executable, "-c", "import time; time.sleep(5)"], label="x", timeout=0.2)
    assert r.error == "timeout"

async def test_run_all_checks_reports_progress(tmp_path):
    checks = [
        {"label": "a", "type": "path", "path": str(tmp_path)},
        {"label": "b", "type": "path", "path": str(tmp_path / "nope")},
    ]
    seen = []

    async def cb(done, total):
        seen.append((done, total))

    results = await run_all_checks(checks, progress_callback=cb)
    assert sorted(r.label for r in results) == ["a", "b"]
    assert seen == [(1, 2), (2, 2)]
