# network/interfaces.py
from __future__ import annotations
import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from command import CommandRunner
from logger import log
from network.identity import normalize_mac, normalize_pci

SYS_NET = "/sys/class/net"
SYS_VIRTUAL_NET = "/sys/devices/virtual/net"

# Never offered as role candidates, even if sysfs says otherwise
VIRTUAL_PREFIXES = ("lo", "virbr", "vnet", "tap", "docker", "br-", "ovs")


@dataclass
class InterfaceInfo:
    name: str
    mac: str
    pci_address: Optional[str] = None
    operstate: str = "unknown"
    speed_mbps: Optional[int] = None
    driver: str = ""
    ip_addresses: List[str] = field(default_factory=list)   # CIDR notation
    is_virtual: bool = False

    @property
    def speed_label(self) -> str:
        if not self.speed_mbps:
            return "-"
        if self.speed_mbps >= 1000:
            return f"{self.speed_mbps // 1000}G"
        return f"{self.speed_mbps}M"

    def display_str(self) -> str:
        ips = ",".join(self.ip_addresses) or "no IP"
        return (
            f"{self.name:<12} {self.pci_address or '-':<13} {self.mac or '-':<18} "
            f"{self.driver or '-':<8} {self.speed_label:>4} {self.operstate.upper():<5} [{ips}]"
        )


def _sysfs(iface: str, attr: str) -> Optional[str]:
    try:
        with open(os.path.join(SYS_NET, iface, attr)) as f:
            return f.read().strip()
    except OSError:
        return None


def read_pci_address(iface: str) -> Optional[str]:
    """PCI address behind /sys/class/net/<iface>/device, if it is a PCI device."""
    device = os.path.join(SYS_NET, iface, "device")
    if not os.path.exists(device):
        return None
    return normalize_pci(os.path.basename(os.path.realpath(device)))


def read_driver(iface: str) -> str:
    driver = os.path.join(SYS_NET, iface, "device", "driver")
    return os.path.basename(os.path.realpath(driver)) if os.path.exists(driver) else ""


def is_virtual_interface(iface: str) -> bool:
    if iface.startswith(VIRTUAL_PREFIXES):
        return True
    if os.path.exists(os.path.join(SYS_VIRTUAL_NET, iface)):
        return True
    return os.path.isdir(os.path.join(SYS_NET, iface, "bridge"))


def addresses_by_interface(commands: CommandRunner) -> Dict[str, List[str]]:
    """IPv4 CIDRs per interface from a single `ip -j addr` query."""
    r = commands.probe(["ip", "-j", "-4", "addr", "show"])
    if not r.ok:
        return {}
    try:
        entries = json.loads(r.stdout or "[]")
    except ValueError as e:
        log.debug("ip -j addr returned unparseable output: %s", e)
        return {}
    return {
        entry["ifname"]: [f"{a['local']}/{a['prefixlen']}" for a in entry.get("addr_info", [])
                          if a.get("family") == "inet"]
        for entry in entries if "ifname" in entry
    }


def get_interface_info(iface: str, addresses: Optional[Dict[str, List[str]]] = None) -> InterfaceInfo:
    speed = _sysfs(iface, "speed")
    return InterfaceInfo(
        name=iface,
        mac=normalize_mac(_sysfs(iface, "address")) or "",
        pci_address=read_pci_address(iface),
        operstate=_sysfs(iface, "operstate") or "unknown",
        # sysfs reports -1 for links without carrier
        speed_mbps=int(speed) if speed and speed.isdigit() else None,
        driver=read_driver(iface),
        ip_addresses=(addresses or {}).get(iface, []),
        is_virtual=is_virtual_interface(iface),
    )


def list_interfaces(commands: Optional[CommandRunner] = None, exclude_lo: bool = True) -> List[InterfaceInfo]:
    """Return all interfaces from /sys/class/net, sorted by name."""
    try:
        names = sorted(os.listdir(SYS_NET))
    except OSError:
        return []
    addresses = addresses_by_interface(commands) if commands else {}
    return [get_interface_info(n, addresses) for n in names if not (exclude_lo and n == "lo")]


def list_nic_candidates(commands: Optional[CommandRunner] = None) -> List[InterfaceInfo]:
    """Physical NICs that may be bound to a role."""
    return [i for i in list_interfaces(commands) if not i.is_virtual]


class SysfsLinks:
    """LinkTable backed by /sys/class/net; renames go through `ip link`."""

    def __init__(self, commands: CommandRunner) -> None:
        self.commands = commands

    @property
    def dry_run(self) -> bool:
        return self.commands.dry_run

    def names(self) -> List[str]:
        try:
            return sorted(os.listdir(SYS_NET))
        except OSError:
            return []

    def exists(self, name: str) -> bool:
        return os.path.exists(os.path.join(SYS_NET, name))

    def is_physical(self, name: str) -> bool:
        return self.exists(name) and not is_virtual_interface(name)

    def pci_address(self, name: str) -> Optional[str]:
        return read_pci_address(name)

    def mac_address(self, name: str) -> Optional[str]:
        return normalize_mac(_sysfs(name, "address"))

    def rename(self, old: str, new: str) -> None:
        self.commands.run(["ip", "link", "set", "dev", old, "down"])
        self.commands.run(["ip", "link", "set", "dev", old, "name", new])
        self.commands.run(["ip", "link", "set", "dev", new, "up"])
