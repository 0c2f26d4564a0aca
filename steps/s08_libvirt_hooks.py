# steps/s08_libvirt_hooks.py
"""libvirt hook scripts: policy routing for virbr0 and DNAT from mgt to the DL/DA guests."""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from engine.context import StepContext
from engine.results import HANDLER_SUCCESS
from logger import log
from steps.common import read_text, render_lines

HOOK_DIR = Path("/etc/libvirt/hooks")
BRIDGE = "virbr0"
BRIDGE_NET = "192.168.122.0/24"
BRIDGE_IP = "192.168.122.1"
UI_IPSET = "ui"


@dataclass
class GuestForward:
    vm_name: str
    guest_ip: str
    host_ssh_port: int
    tcp_ports: List[int] = field(default_factory=list)
    udp_ports: List[int] = field(default_factory=list)
    ui_ports: List[int] = field(default_factory=list)


def guest_forwards(dl_name: str, da_name: str) -> Tuple[GuestForward, ...]:
    return (
        GuestForward(dl_name, "192.168.122.2", 2222,
                     tcp_ports=[6640, 6641, 6642, 6643, 6644, 6645, 6646, 6647, 6648, 8443],
                     ui_ports=[80, 443]),
        GuestForward(da_name, "192.168.122.3", 2223,
                     tcp_ports=[8888, 8889], udp_ports=[162]),
    )


def render_network_hook() -> str:
    return render_lines([
        "#!/bin/bash",
        "# Generated by xdr-installer",
        'if [ "$1" = "default" ]; then',
        f"    NET='{BRIDGE_NET}'; GW='{BRIDGE_IP}'; DEV='{BRIDGE}'; RT='rt_mgt'",
        '    if [ "$2" = "stopped" ] || [ "$2" = "reconnect" ]; then',
        "        ip route del $NET via $GW dev $DEV table $RT",
        "        ip rule del from $NET table $RT",
        "    fi",
        '    if [ "$2" = "started" ] || [ "$2" = "reconnect" ]; then',
        "        ip route add $NET via $GW dev $DEV table $RT",
        "        ip rule add from $NET table $RT",
        "    fi",
        "fi",
    ])


def _rules(g: GuestForward, op: str) -> List[str]:
    dnat = f"/sbin/iptables -t nat {op} PREROUTING -i mgt"
    rules = [
        f"/sbin/iptables {op} FORWARD -o {BRIDGE} -d {g.guest_ip} -j ACCEPT",
        f"{dnat} -p tcp ! -s {g.guest_ip} --dport {g.host_ssh_port} -j DNAT --to {g.guest_ip}:22",
    ]
    rules += [f"{dnat} -p tcp ! -s {g.guest_ip} --dport {p} -j DNAT --to {g.guest_ip}:{p}"
              for p in g.tcp_ports]
    rules += [f"{dnat} -p udp ! -s {g.guest_ip} --dport {p} -j DNAT --to {g.guest_ip}:{p}"
              for p in g.udp_ports]
    rules += [f"{dnat} -p tcp -m set ! --match-set {UI_IPSET} src --dport {p} -j DNAT --to {g.guest_ip}:{p}"
              for p in g.ui_ports]
    return rules


def render_qemu_hook(guests: Tuple[GuestForward, ...]) -> str:
    lines = [
        "#!/bin/bash",
        "# Generated by xdr-installer",
        f"if ! ipset list {UI_IPSET} >/dev/null 2>&1; then",
        f"  ipset create {UI_IPSET} hash:ip",
    ]
    lines += [f"  ipset add {UI_IPSET} {g.guest_ip}" for g in guests]
    lines.append("fi")
    for g in guests:
        lines.append(f'if [ "${{1}}" = "{g.vm_name}" ]; then')
        lines.append('  if [ "${2}" = "stopped" ] || [ "${2}" = "reconnect" ]; then')
        lines += [f"    {r}" for r in _rules(g, "-D")]
        lines.append("  fi")
        lines.append('  if [ "${2}" = "start" ] || [ "${2}" = "reconnect" ]; then')
        lines += [f"    {r}" for r in _rules(g, "-I")]
        lines.append("  fi")
        lines.append("fi")
    return render_lines(lines)


def _install(ctx: StepContext, path: Path, content: str) -> bool:
    if read_text(path) == content:
        log.info("[%s] %s is up to date", ctx.tag, path)
        return False
    ctx.commands.write_file(path, content, mode=0o755)
    return True


def run(ctx: StepContext) -> int:
    ctx.confirm_destructive(
        "libvirt Hooks",
        f"{HOOK_DIR}/network and {HOOK_DIR}/qemu will be created or overwritten.\n\nContinue?",
    )
    guests = guest_forwards(ctx.config.dl_hostname, ctx.config.da_hostname)
    changed = _install(ctx, HOOK_DIR / "network", render_network_hook())
    changed = _install(ctx, HOOK_DIR / "qemu", render_qemu_hook(guests)) or changed
    if changed:
        ctx.commands.run(["systemctl", "restart", "libvirtd"])
    return HANDLER_SUCCESS
