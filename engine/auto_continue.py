# engine/auto_continue.py
from __future__ import annotations
from typing import List, Tuple

from engine.prompts import Prompter
from engine.registry import StepId
from engine.results import Canceled, Failed, RunResult
from engine.runner import StepRunner
from engine.state_store import ExecutionStateStore
from logger import log


class AutoContinueController:
    """Runs the remaining steps in order, starting at the resume point."""

    def __init__(self, runner: StepRunner, store: ExecutionStateStore, prompter: Prompter) -> None:
        self.runner = runner
        self.store = store
        self.prompter = prompter

    def run_all(self) -> List[Tuple[StepId, RunResult]]:
        registry = self.runner.registry
        start = self.store.resume_point(self.runner.state)
        if start >= len(registry):
            self.prompter.notify(
                "XDR Installer",
                f"All steps are already completed.\n\nSTATE_FILE: {self.store.path}",
            )
            return []

        if not self.prompter.confirm(
            "XDR Installer - Auto Proceed",
            "From current state, the next step is:\n\n"
            f"{registry[start].display_name}\n\n"
            "Do you want to execute sequentially from this step?\n"
            "If a step fails, execution stops at that step.",
        ):
            log.info("User canceled auto proceed.")
            return []

        executed: List[Tuple[StepId, RunResult]] = []
        for index in range(start, len(registry)):
            step_id = registry[index].id
            result = self.runner.run(index)
            executed.append((step_id, result))
            if isinstance(result, Failed):
                self.prompter.notify(
                    "Automatic execution stopped",
                    f"An error occurred during STEP {step_id.value} execution.\n\n"
                    "Automatic execution stopped. Check the log for details.",
                )
                break
            if isinstance(result, Canceled):
                log.info("Auto proceed stopped at %s (canceled)", step_id.value)
                break
        return executed

    def run_single(self, index: int) -> RunResult:
        return self.runner.run(index)
