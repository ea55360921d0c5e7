import logging
import shlex
import shutil
import subprocess
from pathlib import Path

from refit.gateway.command_runner.abc import CommandOutcome, CommandRunner

logger = logging.getLogger(__name__)


class RealCommandRunner(CommandRunner):
    def run(self, argv: tuple[str, ...], *, cwd: Path) -> CommandOutcome:
        if shutil.which(argv[0]) is None and not (cwd / argv[0]).is_file():
            return CommandOutcome(argv=argv, exit_code=None, stderr="command not found")

        completed = subprocess.run(
            list(argv), cwd=cwd, check=False, capture_output=True, text=True
        )
        if completed.stdout:
            logger.debug("%s output:\n%s", shlex.join(argv), completed.stdout)
        return CommandOutcome(argv=argv, exit_code=completed.returncode, stderr=completed.stderr)
