# steps/s05_kernel_tuning.py
from __future__ import annotations
import re
from pathlib import Path

from engine.context import StepContext
from engine.results import HANDLER_SUCCESS
from logger import log
from steps.common import FSTAB, read_text, render_lines

GRUB_FILE = Path("/etc/default/grub")
SYSCTL_FILE = Path("/etc/sysctl.d/90-xdr-installer.conf")
QEMU_KVM_DEFAULTS = Path("/etc/default/qemu-kvm")

IOMMU_ARGS = ("intel_iommu=on", "iommu=pt")

SYSCTL_SETTINGS = (
    ("vm.min_free_kbytes", "1048576"),
    ("net.ipv4.ip_forward", "1"),
    ("net.ipv4.conf.all.arp_filter", "0"),
    ("net.ipv4.conf.default.arp_filter", "0"),
    ("net.ipv4.conf.all.arp_announce", "2"),
    ("net.ipv4.conf.default.arp_announce", "2"),
    ("net.ipv4.conf.all.arp_ignore", "1"),
    ("net.ipv4.conf.all.ignore_routes_with_linkdown", "1"),
)

_CMDLINE_RE = re.compile(r'^GRUB_CMDLINE_LINUX="([^"]*)"', re.MULTILINE)


def grub_with_iommu(text: str) -> str:
    """Add the IOMMU arguments to GRUB_CMDLINE_LINUX, keeping existing ones."""
    m = _CMDLINE_RE.search(text)
    if not m:
        suffix = "" if not text or text.endswith("\n") else "\n"
        return text + suffix + f'GRUB_CMDLINE_LINUX="{" ".join(IOMMU_ARGS)}"\n'
    args = m.group(1).split()
    missing = [a for a in IOMMU_ARGS if a not in args]
    if not missing:
        return text
    new_line = f'GRUB_CMDLINE_LINUX="{" ".join(args + missing)}"'
    return text[:m.start()] + new_line + text[m.end():]


def render_sysctl() -> str:
    return render_lines(
        ["# XDR hypervisor kernel parameters (generated by xdr-installer)"]
        + [f"{k} = {v}" for k, v in SYSCTL_SETTINGS]
    )


def fstab_without_swap(text: str) -> str:
    out = []
    for line in text.splitlines():
        fields = line.split()
        if len(fields) >= 3 and not line.lstrip().startswith("#") and fields[2] == "swap":
            out.append("#" + line)
        else:
            out.append(line)
    return "\n".join(out) + ("\n" if text.endswith("\n") else "")


def qemu_kvm_without_ksm(text: str) -> str:
    if re.search(r"^KSM_ENABLED=0\s*$", text, re.MULTILINE):
        return text
    if re.search(r"^KSM_ENABLED=", text, re.MULTILINE):
        return re.sub(r"^KSM_ENABLED=.*$", "KSM_ENABLED=0", text, flags=re.MULTILINE)
    suffix = "" if not text or text.endswith("\n") else "\n"
    return text + suffix + "KSM_ENABLED=0\n"


def _update(ctx: StepContext, path: Path, transform, mode: int = 0o644) -> bool:
    current = read_text(path)
    updated = transform(current)
    if updated == current:
        log.info("[%s] %s already configured (skipping)", ctx.tag, path)
        return False
    ctx.commands.write_file(path, updated, mode=mode)
    return True


def run(ctx: StepContext) -> int:
    if _update(ctx, GRUB_FILE, grub_with_iommu):
        ctx.commands.run(["update-grub"])

    _update(ctx, SYSCTL_FILE, lambda _: render_sysctl())
    ctx.commands.run(["sysctl", "-p", str(SYSCTL_FILE)])

    if _update(ctx, QEMU_KVM_DEFAULTS, qemu_kvm_without_ksm):
        ctx.commands.run(["systemctl", "restart", "qemu-kvm"], check=False)

    ctx.commands.run(["swapoff", "-a"])
    _update(ctx, FSTAB, fstab_without_swap)

    ctx.prompter.notify(
        f"{ctx.tag} - Kernel Tuning",
        "IOMMU enabled in GRUB, kernel parameters applied, KSM and swap disabled.\n\n"
        "A reboot is required for the GRUB changes to take effect.",
    )
    return HANDLER_SUCCESS
