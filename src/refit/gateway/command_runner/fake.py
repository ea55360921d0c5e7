from dataclasses import dataclass
from pathlib import Path

from refit.gateway.command_runner.abc import CommandOutcome, CommandRunner


@dataclass(frozen=True)
class RunCall:
    argv: tuple[str, ...]
    cwd: Path


class FakeCommandRunner(CommandRunner):
    """In-memory command runner that never spawns processes.

    Commands are matched by their program name (argv[0]). `failures` maps a
    program to the (exit code, stderr) it reports; programs in `missing`
    cannot be started. Everything else succeeds.
    """

    def __init__(
        self,
        *,
        failures: dict[str, tuple[int, str]] | None = None,
        missing: set[str] | None = None,
    ) -> None:
        self._failures = failures if failures is not None else {}
        self._missing = missing if missing is not None else set()
        self._run_calls: list[RunCall] = []

    def run(self, argv: tuple[str, ...], *, cwd: Path) -> CommandOutcome:
        self._run_calls.append(RunCall(argv=argv, cwd=cwd))

        if argv[0] in self._missing:
            return CommandOutcome(argv=argv, exit_code=None, stderr="command not found")

        if argv[0] in self._failures:
            exit_code, stderr = self._failures[argv[0]]
            return CommandOutcome(argv=argv, exit_code=exit_code, stderr=stderr)

        return CommandOutcome(argv=argv, exit_code=0, stderr="")

    @property
    def run_calls(self) -> list[RunCall]:
        """This property is for test assertions only."""
        return list(self._run_calls)
