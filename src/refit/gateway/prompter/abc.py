"""Abstract base class for interactive confirmation prompts."""

from abc import ABC, abstractmethod


class Prompter(ABC):
    """Abstract interface for asking the user yes/no questions."""

    @abstractmethod
    def confirm(self, message: str, *, default: bool) -> bool:
        """Ask the user to confirm an action.

        Returns:
            True if the user accepted, False otherwise
        """
        ...
