"""Application context with dependency injection."""

from dataclasses import dataclass
from pathlib import Path

from refit.core.config import STATE_DIR_NAME, RefitConfig, load_config
from refit.gateway.command_runner.abc import CommandRunner
from refit.gateway.command_runner.real import RealCommandRunner
from refit.gateway.prompter.abc import Prompter
from refit.gateway.prompter.real import RealPrompter
from refit.gateway.registry.abc import RegistryClient
from refit.gateway.registry.real import RealRegistryClient
from refit.gateway.time.abc import Time
from refit.gateway.time.real import RealTime


@dataclass(frozen=True)
class RefitContext:
    """Immutable context holding all dependencies for refit operations.

    Created at CLI entry point (or by an embedding caller) and threaded
    through every component. No component reads the process working
    directory on its own; everything is derived from `cwd` here.
    """

    registry: RegistryClient
    time: Time
    prompter: Prompter
    command_runner: CommandRunner
    cwd: Path  # Project root at invocation
    config: RefitConfig

    @property
    def install_dir(self) -> Path:
        """The asset tree being upgraded."""
        return self.cwd / self.config.install_dir

    @property
    def state_dir(self) -> Path:
        """refit's own state (.refit/), never part of the asset tree."""
        return self.cwd / STATE_DIR_NAME

    @property
    def backups_dir(self) -> Path:
        return self.state_dir / "backups"

    @property
    def baseline_dir(self) -> Path:
        """Shipped copies of user-editable files from the last upgrade."""
        return self.state_dir / "baseline"

    @property
    def staging_dir(self) -> Path:
        """Scratch space for downloaded releases."""
        return self.state_dir / "staging"

    @property
    def lock_path(self) -> Path:
        return self.state_dir / "upgrade.lock"

    @staticmethod
    def for_test(
        *,
        cwd: Path,
        registry: RegistryClient | None = None,
        time: Time | None = None,
        prompter: Prompter | None = None,
        command_runner: CommandRunner | None = None,
        config: RefitConfig | None = None,
    ) -> "RefitContext":
        """Create a context wired with fakes.

        Args:
            cwd: Project root (usually a pytest tmp_path)
            registry: Defaults to an empty FakeRegistryClient (no published versions)
            time: Defaults to FakeTime
            prompter: Defaults to a FakePrompter that accepts
            command_runner: Defaults to a FakeCommandRunner where every command passes
            config: Defaults to RefitConfig.defaults()
        """
        from refit.gateway.command_runner.fake import FakeCommandRunner
        from refit.gateway.prompter.fake import FakePrompter
        from refit.gateway.registry.fake import FakeRegistryClient
        from refit.gateway.time.fake import FakeTime

        return RefitContext(
            registry=registry if registry is not None else FakeRegistryClient(),
            time=time if time is not None else FakeTime(),
            prompter=prompter if prompter is not None else FakePrompter(),
            command_runner=command_runner if command_runner is not None else FakeCommandRunner(),
            cwd=cwd,
            config=config if config is not None else RefitConfig.defaults(),
        )


def create_context(cwd: Path) -> RefitContext:
    """Create production context with real implementations.

    Raises:
        ConfigError: If .refit/config.toml is invalid
    """
    return RefitContext(
        registry=RealRegistryClient(),
        time=RealTime(),
        prompter=RealPrompter(),
        command_runner=RealCommandRunner(),
        cwd=cwd,
        config=load_config(cwd),
    )
