# network/netplan.py
from __future__ import annotations
import shutil
import yaml
from pathlib import Path
from typing import List, Optional
from command import CommandRunner
from logger import log
from network.identity import RenamePlan

INSTALLER_FILENAME = "60-xdr-installer.yaml"
UDEV_RULES_FILE = Path("/etc/udev/rules.d/99-custom-ifnames.rules")
HOST_ACCESS_CIDR = "192.168.0.100/24"
CLUSTER_MTU = 9000


class NetplanManager:
    def __init__(self, commands: CommandRunner, netplan_dir: str = "/etc/netplan",
                 udev_rules: Path = UDEV_RULES_FILE):
        self.commands = commands
        self.netplan_dir = Path(netplan_dir)
        self.udev_rules = Path(udev_rules)

    # -- Backup / Restore --------------------------------------------------

    def backup(self) -> None:
        """Copy all existing .yaml files to .yaml.bak (skipping installer file)."""
        for f in self.netplan_dir.glob("*.yaml"):
            if f.name == INSTALLER_FILENAME:
                continue
            bak = f.with_suffix(".yaml.bak")
            if self.commands.dry_run:
                log.info(f"[DRY-RUN] back up {f} -> {bak}")
                continue
            shutil.copy2(f, bak)
            log.info(f"Backed up {f} -> {bak}")

    def restore(self) -> None:
        """Remove installer YAML, restore .bak files."""
        installer = self.netplan_dir / INSTALLER_FILENAME
        if installer.exists():
            installer.unlink()
            log.info(f"Removed installer netplan config {installer}")
        for bak in self.netplan_dir.glob("*.bak"):
            original = bak.with_suffix("")   # strips .bak -> .yaml
            bak.rename(original)
            log.info(f"Restored {bak} -> {original}")

    # -- udev ----------------------------------------------------------------

    @staticmethod
    def render_udev_rules(plans: List[RenamePlan]) -> str:
        lines = ["# Stable NIC names for XDR roles (generated by xdr-installer)"]
        for plan in plans:
            if not plan.pci_address:
                continue
            lines.append(
                f'SUBSYSTEM=="net", ACTION=="add", KERNELS=="{plan.pci_address}", '
                f'NAME:="{plan.alias}"'
            )
        return "\n".join(lines) + "\n"

    def udev_rules_current(self, plans: List[RenamePlan]) -> bool:
        try:
            return self.udev_rules.read_text() == self.render_udev_rules(plans)
        except OSError:
            return False

    def write_udev_rules(self, plans: List[RenamePlan]) -> None:
        missing = [p.role.label for p in plans if not p.pci_address]
        if missing:
            log.warning("No PCI address for %s; udev cannot pin those names", ", ".join(missing))
        self.commands.write_file(self.udev_rules, self.render_udev_rules(plans), mode=0o644)

    # -- Write -------------------------------------------------------------

    @staticmethod
    def build_role_config(
        mgt_cidr: Optional[str],
        gateway: str,
        dns: List[str],
        host_access_cidr: str = HOST_ACCESS_CIDR,
    ) -> dict:
        mgt: dict = {"dhcp4": True} if not mgt_cidr else {
            "addresses": [mgt_cidr],
            "routes": [{"to": "default", "via": gateway}],
        }
        if dns:
            mgt["nameservers"] = {"addresses": dns}
        return {
            "network": {
                "version": 2,
                "renderer": "networkd",
                "ethernets": {
                    "mgt": mgt,
                    "cltr0": {"dhcp4": False, "mtu": CLUSTER_MTU},
                    "hostmgmt": {"dhcp4": False, "addresses": [host_access_cidr]},
                },
            }
        }

    def write_role_config(self, mgt_cidr: Optional[str], gateway: str, dns: List[str]) -> None:
        config = self.build_role_config(mgt_cidr, gateway, dns)
        path = self.netplan_dir / INSTALLER_FILENAME
        self.commands.write_file(path, yaml.dump(config, default_flow_style=False), mode=0o600)

    def generate(self) -> None:
        """Validate the combined netplan configuration without applying it."""
        self.commands.run(["netplan", "generate"])
