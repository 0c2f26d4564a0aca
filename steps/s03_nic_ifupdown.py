# steps/s03_nic_ifupdown.py
from __future__ import annotations
from typing import List, Optional

from engine.context import StepContext
from engine.results import HANDLER_CANCELED, HANDLER_SUCCESS
from errors import ExternalCommandFailure, OperatorCancelled
from logger import log
from network.identity import RenamePlan
from network.netplan import NetplanManager
from state import Role
from validators import validate_dns, validate_gateway_in_subnet, validate_ip, validate_prefix


def _ask_valid(ctx: StepContext, title: str, message: str, default: str, validate) -> str:
    """Ask until the validator accepts; cancel raises OperatorCancelled."""
    value = default
    while True:
        answer = ctx.prompter.ask_text(f"{ctx.tag} - {title}", message, value)
        if answer is None:
            raise OperatorCancelled(f"{title} input canceled")
        value = answer.strip()
        ok, msg = validate(value)
        if ok:
            return value
        ctx.prompter.notify(f"{ctx.tag} - Invalid {title}", msg)


def _prefix_ok(raw: str):
    if not raw.isdigit():
        return False, f"Prefix length must be a number, got '{raw}'."
    return validate_prefix(int(raw))


def ask_management_address(ctx: StepContext) -> None:
    cfg = ctx.config
    while True:
        cfg.mgt_ip = _ask_valid(ctx, "Management IP", "IPv4 address of the mgt interface:",
                                cfg.mgt_ip, validate_ip)
        cfg.mgt_prefix = int(_ask_valid(ctx, "Prefix", "Prefix length (e.g. 24):",
                                        str(cfg.mgt_prefix), _prefix_ok))
        ok, msg = validate_ip(cfg.mgt_ip, cfg.mgt_prefix)
        if ok:
            break
        ctx.prompter.notify(f"{ctx.tag} - Invalid Management IP", msg)
    cfg.mgt_gateway = _ask_valid(
        ctx, "Gateway", "Default gateway:", cfg.mgt_gateway,
        lambda v: validate_gateway_in_subnet(v, cfg.mgt_ip, cfg.mgt_prefix),
    )

    def _dns_ok(raw: str):
        for server in raw.split():
            ok, msg = validate_dns(server)
            if not ok:
                return ok, msg
        return True, ""

    cfg.mgt_dns = _ask_valid(ctx, "DNS", "DNS servers (space separated):",
                             " ".join(cfg.mgt_dns), _dns_ok).split()


def _summary(plans: List[RenamePlan], ctx: StepContext) -> str:
    lines = [f"  {p.current_name:<12} -> {p.alias:<9} (PCI {p.pci_address or '-'})" for p in plans]
    cfg = ctx.config
    return (
        "Interface names will be pinned by udev:\n" + "\n".join(lines)
        + f"\n\nmgt: {cfg.mgt_ip}/{cfg.mgt_prefix} via {cfg.mgt_gateway}"
        + f"\nDNS: {' '.join(cfg.mgt_dns) or '-'}"
        + "\n\nThe host network configuration will be rewritten. Continue?"
    )


def run(ctx: StepContext) -> int:
    resolver = ctx.resolver
    plans = resolver.plan_renames()

    try:
        ask_management_address(ctx)
    except OperatorCancelled:
        return HANDLER_CANCELED
    ctx.confirm_destructive("Apply Network Configuration", _summary(plans, ctx))
    ctx.save_config()

    netplan = NetplanManager(ctx.commands)
    netplan.backup()

    # The management alias is only freed here; udev binds it at the next boot.
    mgt = ctx.state.identity(Role.MANAGEMENT)
    resolver.free_reserved_name(Role.MANAGEMENT.alias, mgt)

    if netplan.udev_rules_current(plans):
        log.info("[%s] udev rename rules already up to date", ctx.tag)
    else:
        netplan.write_udev_rules(plans)

    cfg = ctx.config
    mgt_cidr: Optional[str] = f"{cfg.mgt_ip}/{cfg.mgt_prefix}" if cfg.mgt_ip else None
    netplan.write_role_config(mgt_cidr, cfg.mgt_gateway, cfg.mgt_dns)
    try:
        netplan.generate()
    except ExternalCommandFailure:
        log.error("[%s] netplan generate failed; restoring previous configuration", ctx.tag)
        netplan.restore()
        raise

    for role in (Role.CLUSTER, Role.HOST_ACCESS):
        resolver.bind_alias(role)
    ctx.commands.run(["udevadm", "control", "--reload"])

    for role in Role:
        resolver.refresh(role)
    ctx.store.save_identities(ctx.state)
    log.info("[%s] NIC names planned: %s", ctx.tag,
             ", ".join(f"{p.current_name}->{p.alias}" for p in plans))
    return HANDLER_SUCCESS
