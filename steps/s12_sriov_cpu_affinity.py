# steps/s12_sriov_cpu_affinity.py
from __future__ import annotations
import glob
import os
from typing import List, Optional, Sequence, Tuple

from command import wait_until
from engine.context import StepContext
from engine.results import HANDLER_SUCCESS
from errors import ConvergenceTimeout, PreconditionUnmet
from logger import log
from network.identity import normalize_pci
from network.interfaces import SYS_NET
from state import Role
from steps.s07_lvm_storage import ES_LV, ES_VG
from steps.vm_deploy import DA_PROFILE, DL_PROFILE, vm_defined, vm_state

NUM_VFS = 2
SHUTDOWN_TIMEOUT = 180

# NUMA split: DL on node0 even cores, DA on node1 odd cores; 0-3 stay with the host.
DL_CPUS = list(range(4, 87, 2))
DA_CPUS = list(range(5, 96, 2))


def list_vfs(nic: str) -> List[str]:
    """PCI addresses of the virtual functions behind a physical NIC."""
    links = sorted(glob.glob(os.path.join(SYS_NET, nic, "device", "virtfn*")),
                   key=lambda p: int(p.rsplit("virtfn", 1)[1]))
    vfs = [normalize_pci(os.path.basename(os.path.realpath(p))) for p in links]
    return [v for v in vfs if v]


def hostdev_xml(pci: str) -> str:
    pci = normalize_pci(pci)
    if pci is None:
        raise ValueError("unsupported PCI address")
    domain, bus, rest = pci.split(":")
    slot, func = rest.split(".")
    return (
        "<hostdev mode='subsystem' type='pci' managed='yes'>\n"
        "  <source>\n"
        f"    <address domain='0x{domain}' bus='0x{bus}' slot='0x{slot}' function='0x{func}'/>\n"
        "  </source>\n"
        "</hostdev>\n"
    )


def plan_vcpu_pins(vcpus: int, host_cpus: Sequence[int]) -> List[Tuple[int, int]]:
    """vCPU i -> host_cpus[i]; truncated when fewer host CPUs than vCPUs."""
    if len(host_cpus) < vcpus:
        log.warning("Only %d host CPUs for %d vCPUs; pinning the first %d",
                    len(host_cpus), vcpus, len(host_cpus))
    return list(enumerate(host_cpus[:vcpus]))


def max_vcpus(ctx: StepContext, vm: str, default: int) -> int:
    r = ctx.commands.probe(["virsh", "vcpucount", vm, "--maximum", "--config"])
    out = r.stdout.strip()
    return int(out) if r.ok and out.isdigit() else default


def _shutdown(ctx: StepContext, vm: str) -> None:
    if vm_state(ctx, vm) != "running":
        return
    ctx.commands.run(["virsh", "shutdown", vm], check=False)
    if ctx.dry_run:
        return
    if not wait_until(lambda: vm_state(ctx, vm) == "shut off",
                      timeout=SHUTDOWN_TIMEOUT, interval=5):
        raise ConvergenceTimeout(f"{vm} did not shut down within {SHUTDOWN_TIMEOUT}s.")


def enable_vfs(ctx: StepContext, nic: str) -> List[str]:
    vfs = list_vfs(nic)
    if len(vfs) >= NUM_VFS:
        log.info("[%s] %s already has %d VFs", ctx.tag, nic, len(vfs))
        return vfs
    numvfs = os.path.join(SYS_NET, nic, "device", "sriov_numvfs")
    ctx.commands.run(["tee", numvfs], input_text="0\n")
    ctx.commands.run(["tee", numvfs], input_text=f"{NUM_VFS}\n")
    return list_vfs(nic)


def configure_vm(ctx: StepContext, vm: str, vf: Optional[str], cpus: Sequence[int],
                 default_vcpus: int) -> None:
    if not vm_defined(ctx, vm):
        log.warning("[%s] %s is not defined; skipping", ctx.tag, vm)
        return
    _shutdown(ctx, vm)
    ctx.commands.run(["virsh", "detach-disk", vm, "hda", "--config"], check=False)
    if vf:
        xml = f"/tmp/{vm}_vf.xml"
        ctx.commands.write_file(xml, hostdev_xml(vf))
        ctx.commands.run(["virsh", "attach-device", vm, xml, "--config"])
    for vcpu, pcpu in plan_vcpu_pins(max_vcpus(ctx, vm, default_vcpus), cpus):
        ctx.commands.run(["virsh", "vcpupin", vm, str(vcpu), str(pcpu), "--config"])
    ctx.commands.run(["virsh", "numatune", vm, "--mode", "interleave", "--nodeset", "0-1", "--config"],
                     check=False)


def run(ctx: StepContext) -> int:
    nic = ctx.resolver.require(Role.CLUSTER)
    vfs = enable_vfs(ctx, nic)
    if not vfs and not ctx.dry_run:
        raise PreconditionUnmet(f"No SR-IOV virtual functions found on {nic}. Check BIOS SR-IOV settings.")
    dl_vf = vfs[0] if vfs else None
    da_vf = vfs[1] if len(vfs) > 1 else None
    if dl_vf and not da_vf:
        log.warning("[%s] Only one VF on %s; DA gets CPU affinity only", ctx.tag, nic)

    dl_vm, da_vm = ctx.config.dl_hostname, ctx.config.da_hostname
    configure_vm(ctx, dl_vm, dl_vf, DL_CPUS, DL_PROFILE.vcpus)
    configure_vm(ctx, da_vm, da_vf, DA_CPUS, DA_PROFILE.vcpus)

    if vm_defined(ctx, dl_vm):
        dumped = ctx.commands.probe(["virsh", "dumpxml", dl_vm]).stdout
        if "target dev='vdb'" in dumped:
            log.info("[%s] %s already has vdb attached", ctx.tag, dl_vm)
        else:
            ctx.commands.run(["virsh", "attach-disk", dl_vm, f"/dev/{ES_VG}/{ES_LV}", "vdb", "--config"])

    for vm in (dl_vm, da_vm):
        if vm_defined(ctx, vm):
            ctx.commands.run(["virsh", "start", vm], check=False)
    return HANDLER_SUCCESS
