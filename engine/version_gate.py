# engine/version_gate.py
from __future__ import annotations
import re
from typing import Tuple, TypeVar

CUTOVER_VERSION = "6.2.1"

T = TypeVar("T")


def parse_version(version: str) -> Tuple[int, ...]:
    """'6.10.0' -> (6, 10, 0). Non-numeric parts count as 0."""
    parts = []
    for piece in version.strip().lstrip("vV").split("."):
        m = re.match(r"\d+", piece)
        parts.append(int(m.group()) if m else 0)
    return tuple(parts)


def compare_versions(a: str, b: str) -> int:
    va, vb = parse_version(a), parse_version(b)
    width = max(len(va), len(vb))
    va += (0,) * (width - len(va))
    vb += (0,) * (width - len(vb))
    return (va > vb) - (va < vb)


def select_variant(configured_version: str, legacy: T, new: T, cutover: str = CUTOVER_VERSION) -> T:
    if compare_versions(configured_version, cutover) >= 0:
        return new
    return legacy
