# steps/s06_ntpsec.py
from __future__ import annotations
from pathlib import Path
from typing import List

from engine.context import StepContext
from engine.results import HANDLER_CANCELED, HANDLER_SUCCESS
from logger import log
from steps.common import apt_install, read_text, render_lines

NTP_CONF = Path("/etc/ntpsec/ntp.conf")
IAVF_MODULES = Path("/etc/modules-load.d/iavf.conf")
DEFAULT_NTP_POOL = ["0.ubuntu.pool.ntp.org", "1.ubuntu.pool.ntp.org", "2.ubuntu.pool.ntp.org"]


def render_ntp_conf(servers: List[str]) -> str:
    lines = [
        "# ntpsec configuration (generated by xdr-installer)",
        "driftfile /var/lib/ntpsec/ntp.drift",
        "leapfile /usr/share/zoneinfo/leap-seconds.list",
        "restrict default kod nomodify nopeer noquery limited",
        "restrict 127.0.0.1",
        "restrict ::1",
    ]
    lines += [f"server {s} iburst" for s in servers]
    return render_lines(lines)


def run(ctx: StepContext) -> int:
    servers = ctx.config.ntp_servers
    if not servers:
        answer = ctx.prompter.ask_text(
            f"{ctx.tag} - NTP Servers",
            "NTP servers (space separated). Leave the default to use the Ubuntu pool:",
            " ".join(DEFAULT_NTP_POOL),
        )
        if answer is None:
            return HANDLER_CANCELED
        servers = answer.split() or list(DEFAULT_NTP_POOL)
        ctx.config.ntp_servers = servers
        ctx.save_config()

    apt_install(ctx.commands, ["ntpsec"])
    conf = render_ntp_conf(servers)
    if read_text(NTP_CONF) == conf:
        log.info("[%s] %s already configured (skipping)", ctx.tag, NTP_CONF)
    else:
        ctx.commands.write_file(NTP_CONF, conf)
        ctx.commands.run(["systemctl", "restart", "ntpsec"])

    # SR-IOV VFs on the cluster NIC need the iavf driver at boot
    if read_text(IAVF_MODULES).strip() != "iavf":
        ctx.commands.write_file(IAVF_MODULES, "iavf\n")
    ctx.commands.run(["modprobe", "iavf"], check=False)

    peers = ctx.commands.probe(["ntpq", "-p"])
    if peers.ok:
        log.info("[%s] ntpq -p:\n%s", ctx.tag, peers.stdout.rstrip())
    return HANDLER_SUCCESS
