# steps/s04_kvm_libvirt.py
from __future__ import annotations
from engine.context import StepContext
from engine.results import HANDLER_SUCCESS
from errors import ConvergenceTimeout, PreconditionUnmet
from command import wait_until
from logger import log
from steps.common import apt_install

KVM_PACKAGES = (
    "qemu-kvm", "libvirt-daemon-system", "libvirt-clients", "virtinst",
    "bridge-utils", "qemu-utils", "virt-viewer", "genisoimage", "net-tools",
    "cpu-checker", "ipset", "ipcalc-ng",
)
NETWORK_TIMEOUT = 60
NETWORK_POLL_INTERVAL = 2


def default_network_active(ctx: StepContext) -> bool:
    r = ctx.commands.probe(["virsh", "net-info", "default"])
    return r.ok and any(
        line.split(":", 1)[1].strip() == "yes"
        for line in r.stdout.splitlines()
        if line.startswith("Active:")
    )


def run(ctx: StepContext) -> int:
    apt_install(ctx.commands, KVM_PACKAGES)
    ctx.commands.run(["systemctl", "enable", "--now", "libvirtd"])
    ctx.commands.run(["systemctl", "enable", "--now", "virtlogd"])

    if not ctx.dry_run and not ctx.commands.probe(["kvm-ok"]).ok:
        raise PreconditionUnmet("kvm-ok failed: hardware virtualization is not available.")

    ctx.commands.run(["virsh", "net-autostart", "default"], check=False)
    ctx.commands.run(["virsh", "net-start", "default"], check=False)

    if ctx.dry_run:
        log.info("[DRY-RUN] skip waiting for libvirt default network")
        return HANDLER_SUCCESS
    if not wait_until(lambda: default_network_active(ctx),
                      timeout=NETWORK_TIMEOUT, interval=NETWORK_POLL_INTERVAL):
        raise ConvergenceTimeout(
            f"libvirt 'default' network did not become active within {NETWORK_TIMEOUT}s."
        )
    log.info("[%s] libvirt default network is active", ctx.tag)
    return HANDLER_SUCCESS
