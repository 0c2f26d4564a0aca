# engine/results.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union

HANDLER_SUCCESS = 0
HANDLER_CANCELED = 2


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class Canceled:
    reason: str = ""


@dataclass(frozen=True)
class Failed:
    code: int
    detail: str = ""


RunResult = Union[Done, Canceled, Failed]


def classify(code: Optional[int]) -> RunResult:
    """Map a handler return code (0 / 2 / other) onto a RunResult."""
    if code == HANDLER_SUCCESS:
        return Done()
    if code == HANDLER_CANCELED:
        return Canceled("canceled by operator")
    if code is None:
        return Failed(1, "handler returned no status")
    return Failed(code, f"handler returned {code}")
