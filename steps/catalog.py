# steps/catalog.py
from __future__ import annotations
from engine.registry import StepDescriptor, StepId, StepRegistry
from steps import (
    s01_hw_detect, s02_hwe_kernel, s03_nic_ifupdown, s04_kvm_libvirt,
    s05_kernel_tuning, s06_ntpsec, s07_lvm_storage, s08_libvirt_hooks,
    s09_dp_download, s10_dl_master_deploy, s11_da_master_deploy,
    s12_sriov_cpu_affinity, s13_install_dp_cli,
)


def build_registry() -> StepRegistry:
    return StepRegistry([
        StepDescriptor(StepId.HW_DETECT, "01. Hardware / NIC / Disk Detection and Selection",
                       s01_hw_detect.run),
        StepDescriptor(StepId.HWE_KERNEL, "02. HWE Kernel Installation", s02_hwe_kernel.run),
        StepDescriptor(StepId.NIC_IFUPDOWN, "03. NIC Naming and Network Configuration",
                       s03_nic_ifupdown.run),
        StepDescriptor(StepId.KVM_LIBVIRT, "04. KVM / Libvirt Installation and Basic Configuration",
                       s04_kvm_libvirt.run),
        StepDescriptor(StepId.KERNEL_TUNING, "05. IOMMU / Kernel Parameters / KSM / Swap Tuning",
                       s05_kernel_tuning.run),
        StepDescriptor(StepId.NTPSEC, "06. SR-IOV Driver (iavf) + NTPsec Configuration",
                       s06_ntpsec.run),
        StepDescriptor(StepId.LVM_STORAGE, "07. LVM Storage (DL/DA root + data)", s07_lvm_storage.run),
        StepDescriptor(StepId.LIBVIRT_HOOKS, "08. libvirt hooks", s08_libvirt_hooks.run),
        StepDescriptor(StepId.DP_DOWNLOAD, "09. DP Image and Deployment Script Download",
                       s09_dp_download.run, legacy_handler=s09_dp_download.run_legacy),
        StepDescriptor(StepId.DL_MASTER_DEPLOY, "10. DL-master VM Deployment",
                       s10_dl_master_deploy.run),
        StepDescriptor(StepId.DA_MASTER_DEPLOY, "11. DA-master VM Deployment",
                       s11_da_master_deploy.run),
        StepDescriptor(StepId.SRIOV_CPU_AFFINITY, "12. SR-IOV / CPU Affinity / PCI Passthrough",
                       s12_sriov_cpu_affinity.run),
        StepDescriptor(StepId.INSTALL_DP_CLI, "13. Install DP Appliance CLI package",
                       s13_install_dp_cli.run),
    ])
