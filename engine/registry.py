# engine/registry.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Optional, Tuple, Union

from errors import StepNotFound

if TYPE_CHECKING:
    from engine.context import StepContext


class StepId(str, Enum):
    HW_DETECT = "01_hw_detect"
    HWE_KERNEL = "02_hwe_kernel"
    NIC_IFUPDOWN = "03_nic_ifupdown"
    KVM_LIBVIRT = "04_kvm_libvirt"
    KERNEL_TUNING = "05_kernel_tuning"
    NTPSEC = "06_ntpsec"
    LVM_STORAGE = "07_lvm_storage"
    LIBVIRT_HOOKS = "08_libvirt_hooks"
    DP_DOWNLOAD = "09_dp_download"
    DL_MASTER_DEPLOY = "10_dl_master_deploy"
    DA_MASTER_DEPLOY = "11_da_master_deploy"
    SRIOV_CPU_AFFINITY = "12_sriov_cpu_affinity"
    INSTALL_DP_CLI = "13_install_dp_cli"


Handler = Callable[["StepContext"], int]


@dataclass(frozen=True)
class StepDescriptor:
    id: StepId
    display_name: str
    handler: Handler
    # Set for steps whose behaviour changed at the version cutover.
    legacy_handler: Optional[Handler] = None


class StepRegistry:
    """Fixed, ordered step catalog. Index order is execution order."""

    def __init__(self, steps: Iterable[StepDescriptor]) -> None:
        self._steps: Tuple[StepDescriptor, ...] = tuple(steps)
        self._index = {}
        for i, step in enumerate(self._steps):
            if step.id.value in self._index:
                raise ValueError(f"duplicate step id {step.id.value}")
            self._index[step.id.value] = i

    def __len__(self) -> int:
        return len(self._steps)

    def __getitem__(self, index: int) -> StepDescriptor:
        return self._steps[index]

    def __iter__(self) -> Iterator[StepDescriptor]:
        return iter(self._steps)

    def index_of(self, step_id: Union[StepId, str]) -> int:
        key = step_id.value if isinstance(step_id, StepId) else step_id
        try:
            return self._index[key]
        except KeyError:
            raise StepNotFound(key) from None

    def find(self, step_id: Union[StepId, str, None]) -> Optional[int]:
        if not step_id:
            return None
        try:
            return self.index_of(step_id)
        except StepNotFound:
            return None
