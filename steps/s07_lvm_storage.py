# steps/s07_lvm_storage.py
from __future__ import annotations
from typing import List

from engine.context import StepContext
from engine.results import HANDLER_SUCCESS
from errors import PreconditionUnmet
from logger import log
from steps.common import append_fstab_if_missing

ES_VG = "vg_dl"
ES_LV = "lv_dl"
DL_ROOT_LV = "lv_dl_root"
DA_ROOT_LV = "lv_da_root"
ROOT_LV_SIZE = "545G"
DEFAULT_OS_VG = "ubuntu-vg"
MOUNTS = (("/stellar/dl", DL_ROOT_LV), ("/stellar/da", DA_ROOT_LV))


def detect_os_vg(ctx: StepContext) -> str:
    root_dev = ctx.commands.probe(["findmnt", "-n", "-o", "SOURCE", "/"]).stdout.strip()
    vg = ""
    if root_dev:
        vg = ctx.commands.probe(["lvs", "--noheadings", "-o", "vg_name", root_dev]).stdout.strip()
    if not vg:
        log.warning("[%s] Could not detect OS VG name, using %s", ctx.tag, DEFAULT_OS_VG)
        return DEFAULT_OS_VG
    return vg


def _exists(ctx: StepContext, argv: List[str]) -> bool:
    return ctx.commands.probe(argv).ok


def already_configured(ctx: StepContext, os_vg: str) -> bool:
    if not (_exists(ctx, ["vgs", ES_VG])
            and _exists(ctx, ["lvs", f"{os_vg}/{DL_ROOT_LV}"])
            and _exists(ctx, ["lvs", f"{os_vg}/{DA_ROOT_LV}"])):
        return False
    return all(_exists(ctx, ["findmnt", mount]) for mount, _ in MOUNTS)


def _mkfs_if_blank(ctx: StepContext, device: str) -> None:
    if _exists(ctx, ["blkid", device]):
        log.info("[%s] Filesystem already exists on %s (skipping mkfs)", ctx.tag, device)
        return
    ctx.commands.run(["mkfs.ext4", "-F", device], timeout=3600)


def run(ctx: StepContext) -> int:
    disks = ctx.config.data_ssd_list
    if not disks:
        raise PreconditionUnmet("DATA_SSD_LIST is not set. Select data disks in STEP 01 first.")

    os_vg = detect_os_vg(ctx)
    if already_configured(ctx, os_vg) and ctx.prompter.confirm(
        f"{ctx.tag} - Already Configured",
        f"{ES_VG}/{ES_LV}, {os_vg}/{DL_ROOT_LV}, {os_vg}/{DA_ROOT_LV} and the /stellar mounts "
        "already exist.\n\nDo you want to skip this step?",
    ):
        log.info("[%s] Storage already configured, skipped by operator", ctx.tag)
        return HANDLER_SUCCESS

    ctx.confirm_destructive(
        "Wipe Data Disks",
        "ALL DATA on the following disks will be destroyed:\n\n"
        + "\n".join(f"  /dev/{d}" for d in disks)
        + "\n\nContinue?",
    )

    if _exists(ctx, ["vgs", ES_VG]):
        ctx.commands.run(["vgremove", "-y", ES_VG], check=False)
    for disk in disks:
        ctx.commands.run(["wipefs", "-a", f"/dev/{disk}"], check=False)
    pvs = [f"/dev/{d}" for d in disks]
    ctx.commands.run(["pvcreate", "-y", *pvs])
    ctx.commands.run(["vgcreate", ES_VG, *pvs])
    ctx.commands.run([
        "lvcreate", "--extents", "100%FREE", "--stripes", str(len(pvs)),
        "--name", ES_LV, ES_VG,
    ])

    for lv in (DL_ROOT_LV, DA_ROOT_LV):
        if _exists(ctx, ["lvs", f"{os_vg}/{lv}"]):
            log.info("[%s] LV %s/%s already exists (skipping)", ctx.tag, os_vg, lv)
        else:
            ctx.commands.run(["lvcreate", "-L", ROOT_LV_SIZE, "-n", lv, os_vg])

    for device in (f"/dev/{os_vg}/{DL_ROOT_LV}", f"/dev/{os_vg}/{DA_ROOT_LV}", f"/dev/{ES_VG}/{ES_LV}"):
        _mkfs_if_blank(ctx, device)

    for mount, lv in MOUNTS:
        ctx.commands.run(["mkdir", "-p", mount])
        append_fstab_if_missing(
            ctx.commands, f"/dev/{os_vg}/{lv} {mount} ext4 defaults,noatime 0 2", mount
        )
    ctx.commands.run(["systemctl", "daemon-reload"])
    ctx.commands.run(["mount", "-a"])
    return HANDLER_SUCCESS
