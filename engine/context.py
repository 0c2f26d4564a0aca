# engine/context.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path

from command import CommandRunner
from config import InstallerConfig, save_config
from engine.prompts import Prompter
from engine.registry import StepId
from engine.state_store import ExecutionStateStore
from errors import OperatorCancelled
from logger import log
from network.identity import HardwareIdentityResolver
from state import ExecutionState


@dataclass
class StepContext:
    """Everything a step handler may touch."""

    step_id: StepId
    config: InstallerConfig
    config_path: Path
    state: ExecutionState
    resolver: HardwareIdentityResolver
    prompter: Prompter
    commands: CommandRunner
    store: ExecutionStateStore

    @property
    def dry_run(self) -> bool:
        return self.commands.dry_run

    @property
    def tag(self) -> str:
        return f"STEP {self.step_id.value[:2]}"

    def save_config(self) -> None:
        save_config(self.config, self.config_path)

    def confirm_destructive(self, title: str, message: str) -> None:
        """Second, explicit confirmation for destructive actions; default answer is No."""
        if not self.prompter.confirm(f"{self.tag} - {title}", message, default_no=True):
            log.info("[%s] %s canceled by user", self.tag, title)
            raise OperatorCancelled(f"{title} canceled")
