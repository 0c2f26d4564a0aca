# steps/s13_install_dp_cli.py
from __future__ import annotations
import re
from pathlib import Path
from typing import Iterable, Optional

from engine.context import StepContext
from engine.results import HANDLER_CANCELED, HANDLER_SUCCESS
from engine.version_gate import parse_version
from errors import PreconditionUnmet
from logger import log
from steps.common import apt_install, read_text, render_lines

VENV_DIR = Path("/opt/dp_cli_venv")
CLI_WRAPPER = Path("/usr/local/bin/aella_cli")
LOGIN_SHELL = Path("/usr/bin/aella_cli")
SHELLS = Path("/etc/shells")
SUDOERS = Path("/etc/sudoers.d/stellar")
APPLIANCE_USER = "stellar"

_PKG_RE = re.compile(r"^dp_cli-(?P<version>.+?)\.tar(?:\.gz)?$")


def package_version(path: Path) -> str:
    m = _PKG_RE.match(path.name)
    return m.group("version") if m else ""


def latest_package(candidates: Iterable[Path]) -> Optional[Path]:
    """Newest dp_cli-<ver>.tar[.gz]; '0.0.10' sorts above '0.0.9'."""
    pkgs = [p for p in candidates if package_version(p)]
    if not pkgs:
        return None
    return max(pkgs, key=lambda p: (parse_version(package_version(p)), p.name.endswith(".tar.gz")))


def _venv_python(*args: str):
    return [str(VENV_DIR / "bin" / "python"), *args]


def run(ctx: StepContext) -> int:
    pkg = latest_package(Path(".").glob("dp_cli-*.tar*"))
    if pkg is None:
        raise PreconditionUnmet(
            "No dp_cli-*.tar.gz or dp_cli-*.tar file in the current directory "
            "(e.g. dp_cli-0.0.2.dev8402.tar.gz)."
        )
    if not ctx.prompter.confirm(
        f"{ctx.tag} - Install DP CLI",
        f"Install {pkg.name} into {VENV_DIR} and make aella_cli the login shell "
        f"of the '{APPLIANCE_USER}' user?",
    ):
        return HANDLER_CANCELED
    log.info("[%s] dp_cli package: %s", ctx.tag, pkg)

    apt_install(ctx.commands, ["python3-pip", "python3-venv"])
    ctx.commands.run(["python3", "-m", "venv", str(VENV_DIR)])
    ctx.commands.run(_venv_python("-m", "pip", "install", "--upgrade", "pip", "setuptools<81", "wheel"),
                     timeout=1800)
    ctx.commands.run(_venv_python("-m", "pip", "install", "--upgrade", "--force-reinstall", str(pkg.resolve())),
                     timeout=1800)
    ctx.commands.run(_venv_python("-c", "import dp_cli; from dp_cli import aella_cli_aio_appliance"))

    ctx.commands.write_file(
        CLI_WRAPPER, render_lines(["#!/bin/bash", f'exec "{VENV_DIR}/bin/aella_cli" "$@"']), mode=0o755
    )
    ctx.commands.write_file(
        LOGIN_SHELL,
        render_lines(["#!/bin/bash", "[ $# -ge 1 ] && exit 1", "cd /tmp || exit 1",
                      f"exec sudo {CLI_WRAPPER}"]),
        mode=0o755,
    )
    shells = read_text(SHELLS)
    if str(LOGIN_SHELL) not in shells.split():
        ctx.commands.write_file(SHELLS, shells + ("" if shells.endswith("\n") or not shells else "\n")
                                + f"{LOGIN_SHELL}\n")

    if not ctx.commands.probe(["id", APPLIANCE_USER]).ok:
        log.warning("[%s] User '%s' does not exist; skipping shell and sudo setup", ctx.tag, APPLIANCE_USER)
        return HANDLER_SUCCESS
    ctx.commands.write_file(SUDOERS, f"{APPLIANCE_USER} ALL=(ALL) NOPASSWD: ALL\n", mode=0o440)
    ctx.commands.run(["visudo", "-cf", str(SUDOERS)])
    ctx.commands.run(["usermod", "-a", "-G", "syslog", APPLIANCE_USER])
    ctx.commands.run(["chsh", "-s", str(LOGIN_SHELL), APPLIANCE_USER])
    return HANDLER_SUCCESS
