# steps/s02_hwe_kernel.py
from __future__ import annotations
from engine.context import StepContext
from engine.results import HANDLER_SUCCESS
from logger import log
from steps.common import package_installed

HWE_PACKAGE = "linux-generic-hwe-24.04"


def run(ctx: StepContext) -> int:
    """Full upgrade plus the HWE kernel; the new kernel is picked up on the next reboot."""
    kernel = ctx.commands.probe(["uname", "-r"]).stdout.strip() or "unknown"
    log.info("[%s] Running kernel: %s", ctx.tag, kernel)

    ctx.commands.run(["apt-get", "update"])
    ctx.commands.run(
        ["env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "full-upgrade", "-y"],
        timeout=3600,
    )
    if package_installed(ctx.commands, HWE_PACKAGE):
        log.info("[%s] %s already installed (skipping)", ctx.tag, HWE_PACKAGE)
    else:
        ctx.commands.run(
            ["env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "install", "-y", HWE_PACKAGE],
            timeout=3600,
        )
    ctx.prompter.notify(
        f"{ctx.tag} - HWE Kernel",
        f"{HWE_PACKAGE} is installed.\n\nThe new kernel becomes active after the next reboot "
        "(scheduled after STEP 03 by default).",
    )
    return HANDLER_SUCCESS
