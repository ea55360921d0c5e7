"""Output utilities for CLI commands.

User-facing text goes to stderr so stdout stays free for machine-readable
output.
"""

import click


def user_output(message: str = "", *, nl: bool = True) -> None:
    """Output informational message for human users."""
    click.echo(message, err=True, nl=nl)


def error_output(message: str) -> None:
    user_output(click.style("Error: ", fg="red") + message)
