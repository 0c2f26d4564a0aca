# steps/s01_hw_detect.py
from __future__ import annotations
import json
from typing import List, Optional

from engine.context import StepContext
from engine.prompts import Option
from engine.results import HANDLER_CANCELED, HANDLER_SUCCESS
from errors import ConflictError, PreconditionUnmet
from logger import log
from network.identity import normalize_mac, normalize_pci
from network.interfaces import InterfaceInfo, list_nic_candidates
from state import HardwareIdentity, Role


def _nic_options(nics: List[InterfaceInfo]) -> List[Option]:
    return [(nic.display_str(), nic.name) for nic in nics]


def list_disk_candidates(ctx: StepContext) -> List[Option]:
    """Whole disks except the one holding the root filesystem."""
    root_src = ctx.commands.probe(["findmnt", "-no", "SOURCE", "/"]).stdout.strip()
    root_disk = ""
    if root_src:
        root_disk = ctx.commands.probe(["lsblk", "-no", "PKNAME", root_src]).stdout.strip()

    r = ctx.commands.probe(["lsblk", "-J", "-d", "-o", "NAME,SIZE,MODEL,TYPE"])
    if not r.ok:
        return []
    try:
        devices = json.loads(r.stdout).get("blockdevices", [])
    except ValueError:
        log.warning("[%s] lsblk returned unparseable output", ctx.tag)
        return []
    options = []
    for dev in devices:
        if dev.get("type") != "disk" or dev.get("name") == root_disk:
            continue
        model = (dev.get("model") or "").strip() or "-"
        options.append((f"{dev['name']:<10} {dev.get('size', '?'):>8}  {model}", dev["name"]))
    return options


def _identity_for(nic: InterfaceInfo) -> HardwareIdentity:
    return HardwareIdentity(
        selected_name=nic.name,
        pci_address=normalize_pci(nic.pci_address),
        mac_address=normalize_mac(nic.mac),
        effective_name=nic.name,
    )


def _reuse_existing(ctx: StepContext) -> bool:
    identities = ctx.state.identities
    if any(identities[r].is_empty for r in Role) or not ctx.config.data_ssd_list:
        return False
    summary = "\n".join(
        f"- {r.key_prefix}_NIC: {identities[r].selected_name} ({identities[r].pci_address or 'no PCI'})"
        for r in Role
    )
    return ctx.prompter.confirm(
        f"{ctx.tag} - Reuse Existing Selection",
        f"The following values are already set:\n\n{summary}\n"
        f"- DATA_SSD_LIST: {' '.join(ctx.config.data_ssd_list)}\n\n"
        "Do you want to reuse these values and skip this step?",
    )


def run(ctx: StepContext) -> int:
    if _reuse_existing(ctx):
        log.info("[%s] Reusing existing NIC/disk selection", ctx.tag)
        return HANDLER_SUCCESS

    nics = list_nic_candidates(ctx.commands)
    if not nics:
        raise PreconditionUnmet("Could not find any physical NIC candidates.")
    by_name = {nic.name: nic for nic in nics}

    chosen = {}
    for role in Role:
        current = ctx.state.identity(role).selected_name or "<none>"
        name: Optional[str] = ctx.prompter.choose(
            f"{ctx.tag} - Select {role.alias} NIC",
            f"Select the {role.label} ({role.alias}) NIC.\nCurrent setting: {current}",
            _nic_options(nics),
        )
        if name is None:
            log.info("[%s] %s NIC selection canceled", ctx.tag, role.label)
            return HANDLER_CANCELED
        chosen[role] = _identity_for(by_name[name])
        log.info("[%s] Selected %s NIC: %s (PCI %s)", ctx.tag, role.label, name,
                 chosen[role].pci_address or "-")

    # Rejects two roles on one device before anything is recorded.
    if len({c.selected_name for c in chosen.values()}) < len(chosen):
        raise ConflictError("The same NIC was selected for more than one role.")
    ctx.resolver.check_unique(chosen)

    disks = list_disk_candidates(ctx)
    if not disks:
        raise PreconditionUnmet("No data disk candidates found (root disk excluded).")
    selected = ctx.prompter.choose_many(
        f"{ctx.tag} - Select Data Disks",
        "Select the data SSDs for the LVM volume group.\n"
        "All data on the selected disks will be destroyed in STEP 07.",
        disks,
    )
    if selected is None:
        return HANDLER_CANCELED
    if not selected:
        raise PreconditionUnmet("At least one data disk must be selected.")

    ctx.state.identities.update(chosen)
    ctx.config.data_ssd_list = list(selected)
    ctx.save_config()
    ctx.store.save_identities(ctx.state)

    ctx.prompter.notify(
        f"{ctx.tag} - Selection Complete",
        "\n".join(f"{r.label:<12}: {chosen[r].selected_name}" for r in Role)
        + f"\nData disks  : {' '.join(selected)}",
    )
    return HANDLER_SUCCESS
