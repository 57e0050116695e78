"""
Interactive Prompts

Architectural Intent:
- Terminal implementation of the Questioner protocol used by TLS selection
- Documented defaults are shown in brackets and taken on an empty answer
- Secret answers (licence token) are read without echo
"""

import getpass
from typing import Callable, Optional
from taskbot_deploy.domain.errors import ProvisioningError

YES = ("y", "yes")
NO = ("n", "no")


class Prompter:
    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        secret_fn: Callable[[str], str] = getpass.getpass,
        output: Callable[[str], None] = print,
    ):
        self._input = input_fn
        self._secret = secret_fn
        self._output = output

    def _read(self, reader: Callable[[str], str], prompt: str) -> str:
        try:
            return reader(prompt).strip()
        except EOFError as e:
            raise ProvisioningError(
                "No answer on stdin. Pass the answers as flags with --non-interactive."
            ) from e

    def confirm(self, question: str, default: bool = False) -> bool:
        hint = "[Y/n]" if default else "[y/N]"
        while True:
            answer = self._read(self._input, f"{question} {hint} ").lower()
            if not answer:
                return default
            if answer in YES:
                return True
            if answer in NO:
                return False
            self._output("Please answer 'y' or 'n'.")

    def ask(self, question: str, default: Optional[str] = None) -> str:
        prompt = f"{question} [{default}]: " if default else f"{question}: "
        while True:
            answer = self._read(self._input, prompt)
            if answer:
                return answer
            if default is not None:
                return default
            self._output("A value is required.")

    def secret(self, question: str, has_current: bool = False) -> Optional[str]:
        """
        Reads a hidden value. With a current value, an empty answer keeps
        it and None is returned.
        """
        prompt = f"{question} [keep current]: " if has_current else f"{question}: "
        while True:
            answer = self._read(self._secret, prompt)
            if answer:
                return answer
            if has_current:
                return None
            self._output("A value is required.")

    def choose(self, question: str, choices: dict[str, str], default: str) -> str:
        """Single-letter menu; returns the chosen key."""
        menu = " / ".join(f"[{key}] {label}" for key, label in choices.items())
        while True:
            answer = self._read(
                self._input, f"{question}\n  {menu} (default {default}): "
            ).lower()
            if not answer:
                return default
            if answer in choices:
                return answer
            self._output(f"Please choose one of: {', '.join(choices)}.")
