# network/checks.py
from __future__ import annotations
import asyncio
import os
from dataclasses import dataclass
from typing import Optional, List, Callable, Awaitable
from config import InstallerConfig
from logger import log
from state import Role

PROC_SYS = "/proc/sys"
SYS_NET = "/sys/class/net"
KSM_RUN = "/sys/kernel/mm/ksm/run"
UDEV_RULES = "/etc/udev/rules.d/99-custom-ifnames.rules"
MIN_FREE_KBYTES = "1048576"


@dataclass
class CheckResult:
    label: str
    target: str
    passed: bool
    error: str = ""
    detail: str = ""

    @property
    def status_icon(self) -> str:
        return "✓" if self.passed else "✗"

    def __str__(self) -> str:
        status = "PASS" if self.passed else f"FAIL ({self.error})"
        return f"[{self.status_icon}] {self.label}: {self.target} -> {status}"


def _read(path: str) -> Optional[str]:
    try:
        with open(path) as f:
            return f.read().strip()
    except OSError:
        return None


async def check_path(path: str, *, label: str) -> CheckResult:
    passed = os.path.exists(path)
    log.info("Path check %s: %s", "PASS" if passed else "FAIL", path)
    return CheckResult(label=label, target=path, passed=passed,
                       error="" if passed else "missing")


async def check_value(path: str, expected: str, *, label: str) -> CheckResult:
    """Compare a sysfs/procfs value with the expected one."""
    value = _read(path)
    if value is None:
        return CheckResult(label=label, target=path, passed=False, error="unreadable")
    passed = value == expected
    return CheckResult(label=label, target=path, passed=passed, detail=value,
                       error="" if passed else f"is {value}, expected {expected}")


async def check_command(
    argv: List[str], *, label: str, expect: Optional[str] = None, timeout: float = 10.0
) -> CheckResult:
    """Run argv; pass on exit 0 and, if given, `expect` equal to stripped stdout."""
    target = " ".join(argv)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        out, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        log.warning("Command check TIMEOUT: %s", target)
        return CheckResult(label=label, target=target, passed=False, error="timeout")
    except OSError as e:
        log.warning("Command check ERROR: %s: %s", target, e)
        return CheckResult(label=label, target=target, passed=False, error=str(e))

    text = out.decode(errors="replace").strip()
    if proc.returncode != 0:
        return CheckResult(label=label, target=target, passed=False,
                           error=f"exit {proc.returncode}", detail=text)
    if expect is not None and text != expect:
        return CheckResult(label=label, target=target, passed=False,
                           error=f"'{text}' != '{expect}'", detail=text)
    return CheckResult(label=label, target=target, passed=True, detail=text)


def build_check_matrix(config: InstallerConfig) -> List[dict]:
    """
    Returns list of check descriptors.
    Each dict: {label, type ('path'|'value'|'command'), and the type's arguments}
    """
    checks: List[dict] = [
        {"label": "KVM device", "type": "path", "path": "/dev/kvm"},
        {"label": "libvirtd active", "type": "command",
         "argv": ["systemctl", "is-active", "libvirtd"], "expect": "active"},
        {"label": "IOMMU enabled in kernel cmdline", "type": "command",
         "argv": ["grep", "-q", "iommu=pt", "/proc/cmdline"]},
        {"label": "udev rename rules", "type": "path", "path": UDEV_RULES},
        {"label": "vm.min_free_kbytes", "type": "value",
         "path": f"{PROC_SYS}/vm/min_free_kbytes", "expect": MIN_FREE_KBYTES},
        {"label": "KSM disabled", "type": "value", "path": KSM_RUN, "expect": "0"},
    ]

    for role in Role:
        checks.append({
            "label": f"{role.label} interface ({role.alias})",
            "type": "path", "path": os.path.join(SYS_NET, role.alias),
        })

    for vm in (config.dl_hostname, config.da_hostname):
        checks.append({
            "label": f"VM {vm} running", "type": "command",
            "argv": ["virsh", "domstate", vm], "expect": "running",
        })

    return checks


async def run_all_checks(
    checks: List[dict],
    timeout: float = 10.0,
    progress_callback: Optional[Callable[[int, int], Awaitable[None]]] = None,
) -> List[CheckResult]:
    total = len(checks)
    results: List[CheckResult] = []

    async def _run_one(c: dict) -> CheckResult:
        if c["type"] == "path":
            return await check_path(c["path"], label=c["label"])
        if c["type"] == "value":
            return await check_value(c["path"], c["expect"], label=c["label"])
        return await check_command(c["argv"], label=c["label"],
                                   expect=c.get("expect"), timeout=timeout)

    tasks = [asyncio.create_task(_run_one(c)) for c in checks]
    for i, coro in enumerate(asyncio.as_completed(tasks), 1):
        result = await coro
        results.append(result)
        if progress_callback:
            await progress_callback(i, total)

    return results
