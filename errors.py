# errors.py
from __future__ import annotations
from typing import Optional, Sequence


class InstallerError(Exception):
    """Base for failures a step handler may raise; the runner maps these to Failed."""


class PreconditionUnmet(InstallerError):
    """A prior step's artifact or setting is missing."""


class InterfaceNotFound(PreconditionUnmet):
    pass


class ConflictError(InstallerError):
    """Two roles would bind the same physical device, or an alias cannot be freed."""


class ConvergenceTimeout(InstallerError):
    pass


class ExternalCommandFailure(InstallerError):
    def __init__(self, argv: Sequence[str], returncode: int, output: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        msg = f"Command failed ({returncode}): {' '.join(self.argv)}"
        if output:
            msg += f"\n{output.strip()}"
        super().__init__(msg)


class OperatorCancelled(Exception):
    """Raised from nested confirmations; a cancellation, never a failure."""

    def __init__(self, reason: Optional[str] = None) -> None:
        super().__init__(reason or "canceled by operator")


class StateSaveError(Exception):
    """Persisting the execution state failed. The session must not continue."""


class StepNotFound(KeyError):
    pass
