# engine/reboot.py
from __future__ import annotations
from typing import Union

from command import CommandRunner
from config import InstallerConfig
from engine.prompts import Prompter
from engine.registry import StepId
from errors import ExternalCommandFailure
from logger import log


class RebootInitiated(Exception):
    """The host is rebooting; the session must end now."""


class RebootCoordinator:
    def __init__(self, config: InstallerConfig, commands: CommandRunner, prompter: Prompter) -> None:
        self.config = config
        self.commands = commands
        self.prompter = prompter

    def should_reboot(self, step_id: Union[StepId, str]) -> bool:
        step_id = step_id.value if isinstance(step_id, StepId) else step_id
        return self.config.enable_auto_reboot and step_id in self.config.auto_reboot_after

    def after_step(self, step_id: Union[StepId, str], display_name: str = "") -> bool:
        """Call only once the step's completion is on disk.

        Returns False when no reboot happened; raises RebootInitiated otherwise.
        """
        step_id = step_id.value if isinstance(step_id, StepId) else step_id
        if not self.should_reboot(step_id):
            return False
        log.info(
            "AUTO_REBOOT_AFTER_STEP_ID=%s includes %s; performing auto-reboot",
            " ".join(self.config.auto_reboot_after), step_id,
        )
        self.prompter.notify(
            "Auto Reboot",
            f"STEP {step_id} ({display_name}) has been completed successfully.\n\n"
            "The system will automatically reboot.",
        )
        if self.commands.dry_run:
            log.info("[DRY-RUN] Auto-reboot will not be performed.")
            return False
        try:
            self.commands.run(["reboot"])
        except ExternalCommandFailure as e:
            log.error("Auto-reboot failed: %s", e)
            self.prompter.notify("Auto Reboot Failed", f"{e}\n\nPlease reboot the host manually.")
            return False
        raise RebootInitiated(step_id)
