# steps/vm_deploy.py
"""Shared DL/DA guest deployment through the vendor virt_deploy script."""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List

from command import wait_until
from engine.context import StepContext
from engine.results import HANDLER_CANCELED, HANDLER_SUCCESS
from errors import ConvergenceTimeout, PreconditionUnmet
from logger import log
from steps.s09_dp_download import DEPLOY_SCRIPT, IMAGE_DIR, local_image_name
from validators import validate_memory_gb

GUEST_NETMASK = "255.255.255.0"
GUEST_GATEWAY = "192.168.122.1"
BRIDGE = "virbr0"
RUNNING_TIMEOUT = 300
RUNNING_POLL_INTERVAL = 5


@dataclass(frozen=True)
class VmProfile:
    label: str              # "DL" / "DA"
    node_role: str
    vcpus: int
    disk_gb: int
    install_dir: Path
    guest_ip: str
    memory_attr: str        # InstallerConfig attribute holding the size in GB
    hostname_attr: str


DL_PROFILE = VmProfile("DL", "DL-master", 42, 500, Path("/stellar/dl"), "192.168.122.2",
                       "dl_memory_gb", "dl_hostname")
DA_PROFILE = VmProfile("DA", "resource", 46, 500, Path("/stellar/da"), "192.168.122.3",
                       "da_memory_gb", "da_hostname")


def vm_defined(ctx: StepContext, name: str) -> bool:
    return ctx.commands.probe(["virsh", "dominfo", name]).ok


def vm_state(ctx: StepContext, name: str) -> str:
    return ctx.commands.probe(["virsh", "domstate", name]).stdout.strip()


def destroy_existing(ctx: StepContext, profile: VmProfile, name: str) -> None:
    """Ask before destroying a defined guest; declining cancels the step."""
    if not vm_defined(ctx, name):
        return
    ctx.confirm_destructive(
        f"{name} Redeployment Confirmation",
        f"The {name} VM is currently defined (state: {vm_state(ctx, name) or 'unknown'}).\n\n"
        f"Continuing will destroy and undefine {name} and delete its disk images.\n"
        "This can significantly impact the running cluster.\n\nProceed with redeployment?",
    )
    ctx.commands.run(["virsh", "destroy", name], check=False)
    ctx.commands.run(["virsh", "undefine", name, "--nvram"], check=False)
    for leftover in (profile.install_dir / "images" / name,
                     profile.install_dir / f"{name}.raw", profile.install_dir / f"{name}.log"):
        ctx.commands.run(["rm", "-rf", str(leftover)])


def ask_memory(ctx: StepContext, profile: VmProfile) -> int:
    current = getattr(ctx.config, profile.memory_attr)
    while True:
        answer = ctx.prompter.ask_text(
            f"{ctx.tag} - {profile.label} VM Memory",
            f"Enter {profile.label} VM memory in GB.",
            str(current),
        )
        if answer is None:
            return 0
        ok, msg = validate_memory_gb(answer)
        if ok:
            return int(answer)
        ctx.prompter.notify(f"{ctx.tag} - Invalid Memory", msg)


def deploy_argv(ctx: StepContext, profile: VmProfile, name: str, memory_gb: int,
                otp: str, nodownload: bool) -> List[str]:
    cfg = ctx.config
    return [
        "bash", str(IMAGE_DIR / DEPLOY_SCRIPT),
        f"--hostname={name}",
        f"--release={cfg.dp_version}",
        f"--local-ip={cfg.mgt_ip}",
        f"--node-role={profile.node_role}",
        f"--bridge={BRIDGE}",
        f"--CPUS={profile.vcpus}",
        f"--MEM={memory_gb * 1024}",
        f"--DISKSIZE={profile.disk_gb}",
        f"--nodownload={'true' if nodownload else 'false'}",
        f"--installdir={profile.install_dir}",
        f"--OTP={otp}",
        f"--ip={profile.guest_ip}",
        f"--netmask={GUEST_NETMASK}",
        f"--gw={GUEST_GATEWAY}",
        f"--dns={cfg.mgt_dns[0] if cfg.mgt_dns else '8.8.8.8'}",
    ]


def deploy(ctx: StepContext, profile: VmProfile) -> int:
    cfg = ctx.config
    name = getattr(cfg, profile.hostname_attr)
    script = IMAGE_DIR / DEPLOY_SCRIPT
    image = IMAGE_DIR / local_image_name(cfg.dp_version)
    if not ctx.dry_run and not script.exists():
        raise PreconditionUnmet(f"{script} not found. Complete STEP 09 first.")
    if not cfg.mgt_ip:
        raise PreconditionUnmet("MGT_IP is not set. Complete STEP 03 first.")

    destroy_existing(ctx, profile, name)

    memory_gb = ask_memory(ctx, profile)
    if not memory_gb:
        return HANDLER_CANCELED
    setattr(cfg, profile.memory_attr, memory_gb)
    ctx.save_config()

    otp = ctx.prompter.ask_text(
        f"{ctx.tag} - {profile.label} OTP",
        f"Enter the OTP issued by ACPS for {name}.",
        password=True,
    )
    if not otp:
        log.info("[%s] OTP not provided for %s", ctx.tag, name)
        return HANDLER_CANCELED

    argv = deploy_argv(ctx, profile, name, memory_gb, otp, nodownload=image.exists())
    log.info("[%s] Deploying %s (%s, %d vCPU, %d GB RAM, %d GB disk)", ctx.tag, name,
             profile.node_role, profile.vcpus, memory_gb, profile.disk_gb)
    ctx.commands.run(argv, timeout=4 * 3600, secrets=(otp,))

    if ctx.dry_run:
        return HANDLER_SUCCESS
    if not wait_until(lambda: vm_state(ctx, name) == "running",
                      timeout=RUNNING_TIMEOUT, interval=RUNNING_POLL_INTERVAL):
        raise ConvergenceTimeout(f"{name} did not reach 'running' within {RUNNING_TIMEOUT}s.")
    log.info("[%s] %s is running", ctx.tag, name)
    return HANDLER_SUCCESS
