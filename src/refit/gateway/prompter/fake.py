"""Fake Prompter implementation for testing."""

from refit.gateway.prompter.abc import Prompter


class FakePrompter(Prompter):
    """Returns a preset answer and records every prompt it was shown.

    This class has NO public setup methods beyond constructor.
    """

    def __init__(self, *, answer: bool = True) -> None:
        self._answer = answer
        self._prompts: list[str] = []

    @property
    def prompts(self) -> list[str]:
        """Messages passed to confirm().

        This property is for test assertions only.
        """
        return list(self._prompts)

    def confirm(self, message: str, *, default: bool) -> bool:
        self._prompts.append(message)
        return self._answer
