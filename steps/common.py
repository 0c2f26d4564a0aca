# steps/common.py
from __future__ import annotations
import re
from pathlib import Path
from typing import Iterable, Sequence

from command import CommandRunner
from logger import log

FSTAB = Path("/etc/fstab")


def package_installed(commands: CommandRunner, package: str) -> bool:
    r = commands.probe(["dpkg-query", "-W", "-f=${Status}", package])
    return r.ok and "install ok installed" in r.stdout


def apt_install(commands: CommandRunner, packages: Sequence[str]) -> None:
    missing = [p for p in packages if not package_installed(commands, p)]
    if not missing:
        log.info("Packages already installed: %s", " ".join(packages))
        return
    commands.run(["apt-get", "update"])
    commands.run(
        ["apt-get", "install", "-y", *missing],
        timeout=3600,
    )


def read_text(path: Path) -> str:
    try:
        return Path(path).read_text()
    except OSError:
        return ""


def fstab_with_entry(text: str, line: str, mount_point: str) -> str:
    """Append `line` unless an entry for mount_point already exists."""
    pattern = re.compile(rf"^\S+\s+{re.escape(mount_point)}\s", re.MULTILINE)
    if pattern.search(text):
        return text
    if text and not text.endswith("\n"):
        text += "\n"
    return text + line + "\n"


def append_fstab_if_missing(commands: CommandRunner, line: str, mount_point: str,
                            fstab: Path = FSTAB) -> None:
    current = read_text(fstab)
    updated = fstab_with_entry(current, line, mount_point)
    if updated == current:
        log.info("fstab: %s entry already exists (skipping)", mount_point)
        return
    commands.write_file(fstab, updated)


def render_lines(lines: Iterable[str]) -> str:
    return "\n".join(lines) + "\n"
