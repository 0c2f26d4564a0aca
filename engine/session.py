# engine/session.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from command import CommandRunner
from config import InstallerConfig
from engine.auto_continue import AutoContinueController
from engine.prompts import Prompter
from engine.reboot import RebootCoordinator
from engine.registry import StepRegistry
from engine.runner import StepRunner
from engine.state_store import ExecutionStateStore
from network.identity import HardwareIdentityResolver, LinkTable
from network.interfaces import SysfsLinks
from paths import CONFIG_FILE, CONFLICT_LOG, STATE_FILE
from state import ExecutionState


@dataclass
class Session:
    """Engine objects wired for one menu action."""

    config: InstallerConfig
    state: ExecutionState
    store: ExecutionStateStore
    runner: StepRunner
    controller: AutoContinueController


def open_session(
    config: InstallerConfig,
    prompter: Prompter,
    registry: StepRegistry,
    *,
    config_path: Path = CONFIG_FILE,
    state_file: Path = STATE_FILE,
    conflict_log: Path = CONFLICT_LOG,
    commands: Optional[CommandRunner] = None,
    links: Optional[LinkTable] = None,
) -> Session:
    commands = commands or CommandRunner(dry_run=config.dry_run)
    store = ExecutionStateStore(registry, state_file)
    state = store.load()
    resolver = HardwareIdentityResolver(state, links or SysfsLinks(commands), conflict_log)
    runner = StepRunner(
        registry=registry,
        store=store,
        state=state,
        config=config,
        config_path=config_path,
        prompter=prompter,
        resolver=resolver,
        commands=commands,
        reboot=RebootCoordinator(config, commands, prompter),
    )
    controller = AutoContinueController(runner, store, prompter)
    return Session(config=config, state=state, store=store, runner=runner, controller=controller)
