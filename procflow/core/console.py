from __future__ import annotations

import sys
from datetime import datetime
from typing import Callable, Optional, TextIO


PENDING_MARK = "[ ]"
SUCCESS_MARK = "[✔]"
FAILURE_MARK = "[❌]"
SEPARATOR = "-" * 20

CONFIRM_PROMPT = "Command failed. Ignore and continue [yes/no]: "
UNKNOWN_ANSWER = "Unknown input. Try again"

InputFunc = Callable[[str], str]


def timestamp() -> str:
    # Same shape as `date`: "Sat Sep 28 10:15:02 IST 2019"
    return datetime.now().astimezone().strftime("%a %b %d %H:%M:%S %Z %Y")


class Console:
    """
    Interactive display: per-step status marks, procedure banners and the
    ignore-and-continue confirmation.
    """

    def __init__(self, out: Optional[TextIO] = None, input_fn: Optional[InputFunc] = None):
        self._out = out
        self._input = input_fn

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def line(self, text: str) -> None:
        self._write(text + "\n")

    def pending(self, description: str) -> None:
        # Carriage return only: the final mark overwrites this line.
        self._write(f"{PENDING_MARK}    {description}\r")

    def success(self, description: str) -> None:
        self.line(f"{SUCCESS_MARK}    {description}")

    def failure(self, description: str) -> None:
        self.line(f"{FAILURE_MARK}    {description}")

    def confirm_ignore(self) -> bool:
        """
        Ask until the operator answers exactly "yes" or "no".
        End of input counts as "no".
        """
        while True:
            self._write(CONFIRM_PROMPT)
            try:
                answer = self._read("")
            except EOFError:
                self.line("")
                return False
            answer = answer.strip()
            if answer == "yes":
                return True
            if answer == "no":
                return False
            self.line(UNKNOWN_ANSWER)

    def _read(self, prompt: str) -> str:
        if self._input is not None:
            return self._input(prompt)
        return input(prompt)
