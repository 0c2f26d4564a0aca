# screens/prompter.py
from __future__ import annotations
import queue
from typing import List, Optional, Sequence
from textual.app import App
from textual.screen import ModalScreen
from engine.prompts import Option
from screens.dialogs import (
    ChoiceDialog, ConfirmDialog, InputDialog, MessageDialog, MultiChoiceDialog,
)
from logger import log


class TuiPrompter:
    """Prompter for the engine worker thread.

    Each call pushes a modal screen on the UI thread and blocks the worker
    until the operator dismisses it. Must not be called from the UI thread.
    """

    def __init__(self, app: App) -> None:
        self.app = app

    def _ask(self, screen: ModalScreen):
        answer: "queue.Queue" = queue.Queue(maxsize=1)
        self.app.call_from_thread(self.app.push_screen, screen, answer.put)
        return answer.get()

    def confirm(self, title: str, message: str, *, default_no: bool = False) -> bool:
        result = bool(self._ask(ConfirmDialog(title, message, default_no=default_no)))
        log.debug("confirm %r -> %s", title, result)
        return result

    def notify(self, title: str, message: str) -> None:
        self._ask(MessageDialog(title, message))

    def ask_text(
        self, title: str, message: str, default: str = "", *, password: bool = False
    ) -> Optional[str]:
        return self._ask(InputDialog(title, message, default, password=password))

    def choose(self, title: str, message: str, options: Sequence[Option]) -> Optional[str]:
        return self._ask(ChoiceDialog(title, message, options))

    def choose_many(
        self, title: str, message: str, options: Sequence[Option]
    ) -> Optional[List[str]]:
        return self._ask(MultiChoiceDialog(title, message, options))
