# config.py
from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List

from kvfile import atomic_write, read_kv_file, render_kv
from logger import log
from paths import CONFIG_FILE

DEFAULT_REBOOT_STEPS = ["03_nic_ifupdown", "05_kernel_tuning"]


@dataclass
class InstallerConfig:
    dry_run: bool = True
    dp_version: str = "6.2.1"
    acps_username: str = ""
    acps_password: str = ""
    acps_base_url: str = "https://acps.stellarcyber.ai"

    # Auto-reboot
    enable_auto_reboot: bool = True
    auto_reboot_after: List[str] = field(default_factory=lambda: list(DEFAULT_REBOOT_STEPS))

    # Storage / VMs
    data_ssd_list: List[str] = field(default_factory=list)
    dl_memory_gb: int = 186
    da_memory_gb: int = 156
    dl_hostname: str = "dl-master"
    da_hostname: str = "da-master"

    # Management port (STEP 03)
    mgt_ip: str = ""
    mgt_prefix: int = 24
    mgt_gateway: str = ""
    mgt_dns: List[str] = field(default_factory=lambda: ["8.8.8.8", "8.8.4.4"])
    ntp_servers: List[str] = field(default_factory=list)


# attribute -> file key; lists are stored space separated, flags as 0/1
_KEYS: Dict[str, str] = {
    "dry_run": "DRY_RUN",
    "dp_version": "DP_VERSION",
    "acps_username": "ACPS_USERNAME",
    "acps_password": "ACPS_PASSWORD",
    "acps_base_url": "ACPS_BASE_URL",
    "enable_auto_reboot": "ENABLE_AUTO_REBOOT",
    "auto_reboot_after": "AUTO_REBOOT_AFTER_STEP_ID",
    "data_ssd_list": "DATA_SSD_LIST",
    "dl_memory_gb": "DL_MEMORY_GB",
    "da_memory_gb": "DA_MEMORY_GB",
    "dl_hostname": "DL_HOSTNAME",
    "da_hostname": "DA_HOSTNAME",
    "mgt_ip": "MGT_IP",
    "mgt_prefix": "MGT_PREFIX",
    "mgt_gateway": "MGT_GATEWAY",
    "mgt_dns": "MGT_DNS",
    "ntp_servers": "NTP_SERVERS",
}


def _decode(current, raw: str):
    if isinstance(current, bool):
        return raw.strip() == "1"
    if isinstance(current, int):
        return int(raw.strip())
    if isinstance(current, list):
        return raw.split()
    return raw


def _encode(value) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def config_from_mapping(values: Dict[str, str]) -> InstallerConfig:
    """Build a config from file keys. Missing or malformed values keep their defaults."""
    config = InstallerConfig()
    for f in fields(config):
        key = _KEYS[f.name]
        if key not in values:
            continue
        try:
            setattr(config, f.name, _decode(getattr(config, f.name), values[key]))
        except ValueError:
            log.warning("Ignoring invalid %s=%r in config, using default", key, values[key])
    return config


def load_config(path: Path = CONFIG_FILE) -> InstallerConfig:
    try:
        values = read_kv_file(path)
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Config %s unreadable (%s); using defaults", path, e)
        values = {}
    return config_from_mapping(values)


def save_config(config: InstallerConfig, path: Path = CONFIG_FILE) -> None:
    items = [(_KEYS[f.name], _encode(getattr(config, f.name))) for f in fields(config)]
    atomic_write(path, render_kv(items, header="xdr-installer configuration (auto-generated)"))
    log.info("Saved configuration to %s", path)
