# network/identity.py
from __future__ import annotations
import datetime
import itertools
import json
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from errors import ConflictError, InterfaceNotFound
from logger import log
from paths import CONFLICT_LOG
from state import ExecutionState, HardwareIdentity, Role

# Linux IFNAMSIZ is 16 including the NUL byte.
IFNAME_MAX = 15
TEMP_NAME_POOL = tuple(f"xdrtmp{i}" for i in range(8))

_PCI_RE = re.compile(
    r"^(?:pci@)?(?:(?P<domain>[0-9a-f]{4}):)?(?P<bus>[0-9a-f]{2}):(?P<slot>[0-9a-f]{2})\.(?P<fn>[0-7])$"
)
_MAC_RE = re.compile(r"^[0-9a-f]{2}(?::[0-9a-f]{2}){5}$")


def normalize_pci(value: Optional[str]) -> Optional[str]:
    """'03:00.0' / '0000:03:00.0' / 'pci@0000:03:00.0' -> '0000:03:00.0'."""
    if not value:
        return None
    m = _PCI_RE.match(value.strip().lower())
    if not m:
        return None
    domain = m.group("domain") or "0000"
    return f"{domain}:{m.group('bus')}:{m.group('slot')}.{m.group('fn')}"


def normalize_mac(value: Optional[str]) -> Optional[str]:
    """'AA-BB-CC-DD-EE-FF' -> 'aa:bb:cc:dd:ee:ff'."""
    if not value:
        return None
    mac = value.strip().lower().replace("-", ":")
    return mac if _MAC_RE.match(mac) else None


def same_device(a: HardwareIdentity, b: HardwareIdentity) -> Optional[bool]:
    """PCI decides when both sides know it; MAC only when neither has a PCI address.

    Returns None when the two records cannot be compared.
    """
    pci_a, pci_b = normalize_pci(a.pci_address), normalize_pci(b.pci_address)
    if pci_a and pci_b:
        return pci_a == pci_b
    if pci_a or pci_b:
        return None
    mac_a, mac_b = normalize_mac(a.mac_address), normalize_mac(b.mac_address)
    if mac_a and mac_b:
        return mac_a == mac_b
    return None


class LinkTable(Protocol):
    """Current kernel view of network links."""

    dry_run: bool

    def names(self) -> List[str]:
        ...

    def exists(self, name: str) -> bool:
        ...

    def is_physical(self, name: str) -> bool:
        ...

    def pci_address(self, name: str) -> Optional[str]:
        ...

    def mac_address(self, name: str) -> Optional[str]:
        ...

    def rename(self, old: str, new: str) -> None:
        ...


@dataclass(frozen=True)
class RenameConflictRecord:
    alias: str
    prior_occupant_pci: Optional[str]
    relocated_to: str
    recorded_at: str = ""


@dataclass(frozen=True)
class RenamePlan:
    role: Role
    current_name: str
    alias: str
    pci_address: Optional[str]


class HardwareIdentityResolver:
    """Maps roles to the interface names the kernel currently uses for them."""

    def __init__(
        self,
        state: ExecutionState,
        links: LinkTable,
        conflict_log: Path = CONFLICT_LOG,
    ) -> None:
        self.state = state
        self.links = links
        self.conflict_log = Path(conflict_log)

    # -- Lookup ------------------------------------------------------------

    def _physical_names(self) -> List[str]:
        return [n for n in self.links.names() if self.links.is_physical(n)]

    def device_of(self, name: str) -> HardwareIdentity:
        return HardwareIdentity(
            selected_name=name,
            pci_address=normalize_pci(self.links.pci_address(name)),
            mac_address=normalize_mac(self.links.mac_address(name)),
            effective_name=name,
        )

    def find_device(self, identity: HardwareIdentity) -> Optional[str]:
        """Current name of the device with the identity's PCI address, else MAC."""
        pci = normalize_pci(identity.pci_address)
        if pci:
            for name in self._physical_names():
                if normalize_pci(self.links.pci_address(name)) == pci:
                    return name
        mac = normalize_mac(identity.mac_address)
        if mac:
            for name in self._physical_names():
                if normalize_mac(self.links.mac_address(name)) == mac:
                    return name
        return None

    def resolve(self, role: Role) -> Optional[str]:
        identity = self.state.identity(role)
        eff = identity.effective_name
        if eff and self.links.exists(eff) and self.links.is_physical(eff):
            return eff
        found = self.find_device(identity)
        if found:
            return found
        sel = identity.selected_name
        if sel and self.links.exists(sel):
            return sel
        return None

    def require(self, role: Role) -> str:
        name = self.resolve(role)
        if name is None:
            raise InterfaceNotFound(
                f"{role.label} NIC ({role.key_prefix}_NIC) could not be found. "
                "Select NICs in STEP 01 first."
            )
        return name

    def refresh(self, role: Role) -> Optional[str]:
        """Resolve and record the device's current name, PCI address and MAC."""
        name = self.resolve(role)
        if name is None:
            return None
        identity = self.state.identity(role)
        found = self.device_of(name)
        identity.effective_name = name
        identity.pci_address = found.pci_address or normalize_pci(identity.pci_address)
        identity.mac_address = found.mac_address or normalize_mac(identity.mac_address)
        return name

    # -- Uniqueness --------------------------------------------------------

    def check_unique(self, identities: Optional[Dict[Role, HardwareIdentity]] = None) -> None:
        """Raise ConflictError if two roles point at one physical device."""
        identities = identities if identities is not None else self.state.identities
        roles = [r for r in Role if r in identities and not identities[r].is_empty]
        for a, b in itertools.combinations(roles, 2):
            if same_device(identities[a], identities[b]):
                raise ConflictError(
                    f"{a.label} and {b.label} NICs refer to the same physical device "
                    f"(PCI {identities[a].pci_address or '-'}, MAC {identities[a].mac_address or '-'})."
                )
        if identities is not self.state.identities:
            return
        resolved = {r: self.resolve(r) for r in roles}
        for a, b in itertools.combinations(roles, 2):
            if resolved[a] and resolved[a] == resolved[b]:
                raise ConflictError(
                    f"{a.label} and {b.label} NICs both resolve to interface {resolved[a]}."
                )

    # -- Renaming ----------------------------------------------------------

    def _pick_temp_name(self) -> str:
        for candidate in TEMP_NAME_POOL:
            if len(candidate) <= IFNAME_MAX and not self.links.exists(candidate):
                return candidate
        raise ConflictError("No free temporary interface name left in the rename pool.")

    def _record(self, record: RenameConflictRecord) -> None:
        self.conflict_log.parent.mkdir(parents=True, exist_ok=True)
        with open(self.conflict_log, "a") as f:
            f.write(json.dumps(asdict(record)) + "\n")

    def free_reserved_name(
        self, alias: str, identity: HardwareIdentity
    ) -> Optional[RenameConflictRecord]:
        """Move a different device off `alias` so it can be bound to `identity`'s device."""
        if not self.links.exists(alias):
            return None
        holder = self.device_of(alias)
        match = same_device(holder, identity)
        if match is None:
            raise ConflictError(
                f"Interface {alias} exists but cannot be compared with the intended device "
                "(no PCI or MAC address recorded)."
            )
        if match:
            log.debug("%s already refers to the intended device", alias)
            return None

        temp = self._pick_temp_name()
        log.warning(
            "Alias %s is held by PCI %s; relocating it to %s",
            alias, holder.pci_address, temp,
        )
        self.links.rename(alias, temp)
        record = RenameConflictRecord(
            alias=alias,
            prior_occupant_pci=holder.pci_address,
            relocated_to=temp,
            recorded_at=datetime.datetime.now().isoformat(timespec="seconds"),
        )
        if self.links.dry_run:
            log.info("[DRY-RUN] rename conflict not recorded: %s", record)
        else:
            self._record(record)
        return record

    def bind_alias(self, role: Role) -> Optional[RenameConflictRecord]:
        """Rename the role's device to its stable alias, freeing the alias first."""
        alias = role.alias
        identity = self.state.identity(role)
        if self.links.exists(alias) and same_device(self.device_of(alias), identity):
            identity.effective_name = alias
            return None
        record = self.free_reserved_name(alias, identity)
        # The recorded effective name may be the alias now held by another device
        current = self.find_device(identity) or self.require(role)
        if current == alias:
            raise InterfaceNotFound(
                f"{role.label} NIC (PCI {identity.pci_address or '-'}, "
                f"MAC {identity.mac_address or '-'}) is not present; {alias} belongs to another device."
            )
        self.links.rename(current, alias)
        if not self.links.dry_run:
            identity.effective_name = alias
        log.info("Bound %s NIC %s -> %s", role.label, current, alias)
        return record

    def plan_renames(self) -> List[RenamePlan]:
        self.check_unique()
        plans = []
        for role in Role:
            current = self.require(role)
            identity = self.state.identity(role)
            pci = normalize_pci(identity.pci_address) or normalize_pci(
                self.links.pci_address(current)
            )
            plans.append(RenamePlan(role=role, current_name=current, alias=role.alias, pci_address=pci))
        return plans
