"""Interactive operator prompts backed by questionary."""

from __future__ import annotations

from typing import Sequence

import questionary

from replicator.core.errors import UserAbort


class Prompter:
    """
    Wraps questionary so commands can run unattended.

    `assume_yes` answers every confirmation with yes. A None answer (Ctrl-C)
    aborts the run.
    """

    def __init__(self, *, assume_yes: bool = False):
        self.assume_yes = assume_yes

    def confirm(self, message: str, default: bool = False) -> bool:
        if self.assume_yes:
            return True
        return bool(_answer(questionary.confirm(message, default=default).ask()))

    def require_confirmation(self, message: str) -> None:
        if not self.confirm(message):
            raise UserAbort(message)

    def text(self, message: str, default: str = "") -> str:
        return str(_answer(questionary.text(message, default=default).ask())).strip()

    def select(self, message: str, choices: Sequence[str]) -> str:
        if not choices:
            raise UserAbort(f"{message} (nothing to choose from)")
        return str(_answer(questionary.select(message, choices=list(choices)).ask()))

    def checkbox(self, message: str, choices: Sequence[str]) -> list[str]:
        if not choices:
            return []
        return list(_answer(questionary.checkbox(message, choices=list(choices)).ask()))


def _answer(value):
    if value is None:
        raise UserAbort("prompt cancelled")
    return value
