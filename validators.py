# validators.py
from __future__ import annotations
import ipaddress
import re
from typing import Iterable, Tuple

def validate_ip(address: str, prefix_len: int = None) -> Tuple[bool, str]:
    try:
        ip = ipaddress.IPv4Address(address)
    except ValueError:
        return False, f"'{address}' is not a valid IPv4 address."

    if prefix_len is not None:
        net = ipaddress.IPv4Network(f"{address}/{prefix_len}", strict=False)
        if ip == net.network_address:
            return False, f"{address} is the network address of {net}."
        if ip == net.broadcast_address:
            return False, f"{address} is the broadcast address of {net}."

    return True, ""

def validate_prefix(prefix_len: int) -> Tuple[bool, str]:
    if not isinstance(prefix_len, int) or not (1 <= prefix_len <= 32):
        return False, f"Prefix length must be 1-32, got {prefix_len}."
    return True, ""

def validate_gateway_in_subnet(
    gateway: str, host_ip: str, prefix_len: int
) -> Tuple[bool, str]:
    try:
        gw = ipaddress.IPv4Address(gateway)
        net = ipaddress.IPv4Network(f"{host_ip}/{prefix_len}", strict=False)
    except ValueError as e:
        return False, str(e)

    if gw not in net:
        return False, f"Gateway {gateway} is not in subnet {net}."
    return True, ""

def validate_dns(address: str) -> Tuple[bool, str]:
    try:
        ipaddress.IPv4Address(address)
        return True, ""
    except ValueError:
        return False, f"'{address}' is not a valid DNS server IP."

def validate_version(version: str) -> Tuple[bool, str]:
    if not re.fullmatch(r"\d+(\.\d+){1,3}", version.strip()):
        return False, f"'{version}' is not a version like 6.2.1."
    return True, ""

def validate_step_ids(raw: str, known: Iterable[str]) -> Tuple[bool, str]:
    known = set(known)
    unknown = [s for s in raw.split() if s not in known]
    if unknown:
        return False, f"Unknown step id(s): {', '.join(unknown)}."
    return True, ""

def validate_memory_gb(raw: str, minimum: int = 8) -> Tuple[bool, str]:
    if not raw.strip().isdigit():
        return False, f"Memory must be a whole number of GB, got '{raw}'."
    if int(raw) < minimum:
        return False, f"Memory must be at least {minimum} GB."
    return True, ""

def validate_hostname(name: str) -> Tuple[bool, str]:
    if not re.fullmatch(r"[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?", name):
        return False, f"'{name}' is not a valid hostname (lowercase letters, digits, '-')."
    return True, ""
