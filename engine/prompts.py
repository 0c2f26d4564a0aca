# engine/prompts.py
from __future__ import annotations
from typing import List, Optional, Protocol, Sequence, Tuple

Option = Tuple[str, str]   # (label, value)


class Prompter(Protocol):
    """Operator dialogs. Every prompt can be canceled; cancel returns False/None."""

    def confirm(self, title: str, message: str, *, default_no: bool = False) -> bool:
        ...

    def notify(self, title: str, message: str) -> None:
        ...

    def ask_text(
        self, title: str, message: str, default: str = "", *, password: bool = False
    ) -> Optional[str]:
        ...

    def choose(self, title: str, message: str, options: Sequence[Option]) -> Optional[str]:
        ...

    def choose_many(
        self, title: str, message: str, options: Sequence[Option]
    ) -> Optional[List[str]]:
        ...
