# engine/state_store.py
from __future__ import annotations
import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from engine.registry import StepId, StepRegistry
from errors import StateSaveError
from kvfile import atomic_write, read_kv_file, render_kv
from logger import log
from paths import STATE_FILE
from state import ExecutionState, HardwareIdentity, Role

# HardwareIdentity attribute -> key suffix, e.g. MGT_NIC_PCI
_IDENTITY_SUFFIXES = (
    ("selected_name", "_NIC"),
    ("pci_address", "_NIC_PCI"),
    ("mac_address", "_NIC_MAC"),
    ("effective_name", "_NIC_EFFECTIVE"),
)


def _identity_items(state: ExecutionState) -> List[Tuple[str, Optional[str]]]:
    items = []
    for role in Role:
        identity = state.identity(role)
        for attr, suffix in _IDENTITY_SUFFIXES:
            items.append((role.key_prefix + suffix, getattr(identity, attr)))
    return items


def _identities_from(values: Dict[str, str]) -> Dict[Role, HardwareIdentity]:
    identities = {}
    for role in Role:
        identity = HardwareIdentity()
        for attr, suffix in _IDENTITY_SUFFIXES:
            setattr(identity, attr, values.get(role.key_prefix + suffix) or None)
        identities[role] = identity
    return identities


def _now() -> str:
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class ExecutionStateStore:
    """Loads and atomically persists step progress plus the NIC identity snapshot."""

    def __init__(
        self,
        registry: StepRegistry,
        path: Path = STATE_FILE,
        clock: Callable[[], str] = _now,
    ) -> None:
        self.registry = registry
        self.path = Path(path)
        self._clock = clock

    def load(self) -> ExecutionState:
        try:
            values = read_kv_file(self.path)
        except (OSError, UnicodeDecodeError) as e:
            log.warning("State file %s unreadable (%s); treating as nothing completed", self.path, e)
            values = {}
        return ExecutionState(
            last_completed_step=values.get("LAST_COMPLETED_STEP") or None,
            last_run_time=values.get("LAST_RUN_TIME") or None,
            identities=_identities_from(values),
        )

    def _write(self, state: ExecutionState) -> None:
        items = [
            ("LAST_COMPLETED_STEP", state.last_completed_step),
            ("LAST_RUN_TIME", state.last_run_time),
        ] + _identity_items(state)
        try:
            atomic_write(self.path, render_kv(items))
        except OSError as e:
            raise StateSaveError(f"Could not write state file {self.path}: {e}") from e

    def save(self, step_id: Union[StepId, str], state: ExecutionState) -> None:
        """Record step_id as the last completed step. Raises StateSaveError."""
        step_id = step_id.value if isinstance(step_id, StepId) else step_id
        previous = (state.last_completed_step, state.last_run_time)
        state.last_completed_step = step_id
        state.last_run_time = self._clock()
        try:
            self._write(state)
        except StateSaveError:
            state.last_completed_step, state.last_run_time = previous
            raise
        log.info("State saved: LAST_COMPLETED_STEP=%s", step_id)

    def save_identities(self, state: ExecutionState) -> None:
        """Persist the identity snapshot without touching progress."""
        on_disk = self.load()
        snapshot = ExecutionState(
            last_completed_step=on_disk.last_completed_step,
            last_run_time=on_disk.last_run_time,
            identities=state.identities,
        )
        self._write(snapshot)

    def reset_progress(self) -> ExecutionState:
        """Forget completed steps; discovered hardware identities are kept."""
        state = self.load()
        state.last_completed_step = None
        state.last_run_time = None
        self._write(state)
        log.info("Step progress reset (hardware identities kept)")
        return state

    def resume_point(self, state: Optional[ExecutionState] = None) -> int:
        if state is None:
            state = self.load()
        index = self.registry.find(state.last_completed_step)
        if index is None:
            if state.last_completed_step:
                log.warning(
                    "Unknown LAST_COMPLETED_STEP=%s; restarting from the first step",
                    state.last_completed_step,
                )
            return 0
        return min(index + 1, len(self.registry))
