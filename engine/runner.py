# engine/runner.py
from __future__ import annotations
from pathlib import Path

from command import CommandRunner
from config import InstallerConfig
from engine.context import StepContext
from engine.prompts import Prompter
from engine.reboot import RebootCoordinator, RebootInitiated
from engine.registry import StepRegistry
from engine.results import Canceled, Done, Failed, RunResult, classify
from engine.state_store import ExecutionStateStore
from engine.version_gate import select_variant
from errors import InstallerError, OperatorCancelled, StateSaveError
from logger import log
from network.identity import HardwareIdentityResolver
from state import ExecutionState


class StepRunner:
    """Runs one step: confirm, dispatch, classify, persist, maybe reboot."""

    def __init__(
        self,
        registry: StepRegistry,
        store: ExecutionStateStore,
        state: ExecutionState,
        config: InstallerConfig,
        config_path: Path,
        prompter: Prompter,
        resolver: HardwareIdentityResolver,
        commands: CommandRunner,
        reboot: RebootCoordinator,
    ) -> None:
        self.registry = registry
        self.store = store
        self.state = state
        self.config = config
        self.config_path = config_path
        self.prompter = prompter
        self.resolver = resolver
        self.commands = commands
        self.reboot = reboot

    def run(self, index: int) -> RunResult:
        step = self.registry[index]
        step_id = step.id.value
        handler = step.handler
        if step.legacy_handler is not None:
            handler = select_variant(self.config.dp_version, step.legacy_handler, step.handler)

        if not self.prompter.confirm(
            f"XDR Installer - {step_id}",
            f"{step.display_name}\n\nDo you want to execute this step?",
        ):
            log.info("User canceled execution of STEP %s.", step_id)
            return Canceled("step not confirmed")

        log.info("===== STEP START: %s - %s =====", step_id, step.display_name)
        ctx = StepContext(
            step_id=step.id,
            config=self.config,
            config_path=self.config_path,
            state=self.state,
            resolver=self.resolver,
            prompter=self.prompter,
            commands=self.commands,
            store=self.store,
        )
        try:
            result = classify(handler(ctx))
        except OperatorCancelled as e:
            result = Canceled(str(e))
        except InstallerError as e:
            result = Failed(1, str(e))
        except (StateSaveError, RebootInitiated):
            raise
        except Exception as e:
            log.exception("Unexpected error in STEP %s", step_id)
            result = Failed(1, f"{type(e).__name__}: {e}")

        if isinstance(result, Done):
            log.info("===== STEP DONE: %s - %s =====", step_id, step.display_name)
            # StateSaveError propagates: losing progress must end the session.
            self.store.save(step.id, self.state)
            self.reboot.after_step(step.id, step.display_name)
        elif isinstance(result, Failed):
            log.error(
                "===== STEP FAILED (rc=%s): %s - %s ===== %s",
                result.code, step_id, step.display_name, result.detail,
            )
            self.prompter.notify(
                f"STEP Failed - {step_id}",
                f"An error occurred while executing STEP {step_id} ({step.display_name}).\n\n"
                f"{result.detail}\n\n"
                "Please check the logs and re-run the STEP if necessary.\n"
                "The installer can continue to run.",
            )
        else:
            log.info("STEP %s canceled: %s", step_id, result.reason)
        return result
