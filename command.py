# command.py
from __future__ import annotations
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from errors import ExternalCommandFailure
from logger import log


@dataclass(frozen=True)
class CmdResult:
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _fmt(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def _masked(argv: Sequence[str], secrets: Sequence[str]) -> List[str]:
    out = []
    for arg in argv:
        for secret in secrets:
            if secret:
                arg = arg.replace(secret, "****")
        out.append(arg)
    return out


class CommandRunner:
    """Runs host commands. In dry mode side effects are logged, not performed."""

    def __init__(self, dry_run: bool = True) -> None:
        self.dry_run = dry_run

    def _exec(self, argv: List[str], input_text: Optional[str], timeout: Optional[float]) -> CmdResult:
        try:
            p = subprocess.run(
                argv, input=input_text, capture_output=True, text=True, timeout=timeout
            )
        except FileNotFoundError:
            return CmdResult(argv=argv, returncode=127, stderr=f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired:
            return CmdResult(argv=argv, returncode=124, stderr=f"timed out after {timeout}s")
        if p.stderr:
            log.debug("STDERR %s: %s", argv[0], p.stderr.strip())
        return CmdResult(argv=argv, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input_text: Optional[str] = None,
        timeout: Optional[float] = None,
        secrets: Sequence[str] = (),
    ) -> CmdResult:
        """Run a state-changing command. `secrets` are masked in logs and errors."""
        argv = list(argv)
        shown = _masked(argv, secrets)
        if self.dry_run:
            log.info("[DRY-RUN] %s", _fmt(shown))
            return CmdResult(argv=argv, returncode=0)
        log.info("[RUN] %s", _fmt(shown))
        result = self._exec(argv, input_text, timeout)
        if check and not result.ok:
            raise ExternalCommandFailure(shown, result.returncode, result.stderr or result.stdout)
        return result

    def probe(self, argv: Sequence[str], timeout: Optional[float] = 30) -> CmdResult:
        """Run a read-only query. Executes in dry mode too; never raises on exit code."""
        argv = list(argv)
        log.debug("[PROBE] %s", _fmt(argv))
        return self._exec(argv, None, timeout)

    def write_file(self, path: Path, content: str, mode: int = 0o644) -> None:
        path = Path(path)
        if self.dry_run:
            log.info("[DRY-RUN] write %s (%d bytes)", path, len(content))
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        os.chmod(path, mode)
        log.info("Wrote %s", path)


def wait_until(
    predicate: Callable[[], bool],
    *,
    timeout: float,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll predicate every `interval` seconds until true or `timeout` elapses."""
    deadline = clock() + timeout
    while True:
        if predicate():
            return True
        if clock() >= deadline:
            return False
        sleep(interval)
