# state.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Role(Enum):
    """Logical network functions bound to physical NICs: (key prefix, alias, label)."""

    MANAGEMENT = ("MGT", "mgt", "Management")
    CLUSTER = ("CLTR0", "cltr0", "Cluster")
    HOST_ACCESS = ("HOST", "hostmgmt", "Host access")

    def __init__(self, key_prefix: str, alias: str, label: str) -> None:
        self.key_prefix = key_prefix
        self.alias = alias
        self.label = label


@dataclass
class HardwareIdentity:
    selected_name: Optional[str] = None
    pci_address: Optional[str] = None    # DDDD:BB:SS.F
    mac_address: Optional[str] = None    # aa:bb:cc:dd:ee:ff
    effective_name: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.selected_name or self.pci_address or self.mac_address)


def _empty_identities() -> Dict[Role, HardwareIdentity]:
    return {role: HardwareIdentity() for role in Role}


@dataclass
class ExecutionState:
    last_completed_step: Optional[str] = None
    last_run_time: Optional[str] = None
    identities: Dict[Role, HardwareIdentity] = field(default_factory=_empty_identities)

    def identity(self, role: Role) -> HardwareIdentity:
        return self.identities.setdefault(role, HardwareIdentity())
