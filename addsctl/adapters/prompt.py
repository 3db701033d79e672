"""
Interactive secret prompt backed by click.
"""

from __future__ import annotations

import click
from pydantic import SecretStr

from addsctl.adapters.base import SecretPrompt


class ClickSecretPrompt(SecretPrompt):
    """Masked prompt on the controlling terminal.

    Args:
        confirm: Ask twice and require both entries to match.
    """

    def __init__(self, confirm: bool = True):
        self._confirm = confirm

    def ask(self, message: str) -> SecretStr | None:
        value = click.prompt(
            message,
            hide_input=True,
            confirmation_prompt=self._confirm,
            default="",
            show_default=False,
        )
        return SecretStr(value) if value else None
