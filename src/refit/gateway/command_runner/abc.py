"""Running post-upgrade commands (e.g. `npm install`) inside the install dir."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

# Lines of stderr quoted when a command fails
STDERR_TAIL_LINES = 5


@dataclass(frozen=True)
class CommandOutcome:
    """How one post-upgrade command ended.

    exit_code is None when the program could not be started.
    """

    argv: tuple[str, ...]
    exit_code: int | None
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def failure_reason(self) -> str:
        """One-line explanation for logs and the upgrade error message."""
        if self.exit_code is None:
            reason = f"could not start {self.argv[0]}"
        else:
            reason = f"exited with status {self.exit_code}"
        tail = self.stderr.strip().splitlines()[-STDERR_TAIL_LINES:]
        if tail:
            reason = f"{reason}: {' | '.join(line.strip() for line in tail)}"
        return reason


class CommandRunner(ABC):
    @abstractmethod
    def run(self, argv: tuple[str, ...], *, cwd: Path) -> CommandOutcome:
        """Run argv in cwd and report how it ended; never raises for a non-zero exit."""
        ...
