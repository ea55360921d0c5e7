"""Production Prompter implementation using click.confirm."""

import click

from refit.gateway.prompter.abc import Prompter


class RealPrompter(Prompter):
    """Prompts on the terminal. Prompt text goes to stderr with other user output."""

    def confirm(self, message: str, *, default: bool) -> bool:
        return click.confirm(message, default=default, err=True)
