"""Drive one upgrade run from source detection to completion or rollback.

Phases before BACKING_UP have no side effects on the install dir; any
failure there ends in ABORTED. Once MERGING starts, any failure (including
KeyboardInterrupt) restores the pre-upgrade backup.

Components raise exceptions; this module converts them into UpgradeError
values so callers always receive an UpgradeResult.
"""

import logging
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path

from packaging.version import InvalidVersion, Version

from refit.backup.manager import BackupManager
from refit.backup.models import Backup
from refit.core.context import RefitContext, create_context
from refit.core.errors import (
    BackupError,
    BackupValidationError,
    LockHeldError,
    ManifestMissingError,
    MergeConflictError,
    MigrationFailedError,
    MigrationRegistryError,
    NoSourceAvailableError,
    RefitError,
    RestoreError,
    RollbackFailedError,
    SourceInvalidError,
    SourceUnavailableError,
    UnclassifiedFileError,
    UpgradeValidationError,
)
from refit.core.layout import CRITICAL_PATHS
from refit.merge.merger import FileMerger, FilePlan
from refit.migrations.builtin import MIGRATION_IMPLEMENTATIONS
from refit.migrations.models import MigrationContext, MigrationDescriptor, MigrationFn
from refit.migrations.registry import MigrationRegistry, load_migration_registry
from refit.migrations.runner import MigrationRunner
from refit.upgrade.lock import UpgradeLock
from refit.upgrade.models import UpgradeError, UpgradeOptions, UpgradePlan, UpgradeResult
from refit.upgrade.sources import ResolvedSource, SourceDetector
from refit.upgrade.state import UpgradePhase, UpgradeStateMachine
from refit.versioning.manifest import require_manifest
from refit.versioning.resolver import VersionResolver

logger = logging.getLogger(__name__)

# error_type values carried by UpgradeError; the CLI maps them to exit codes
ERROR_TYPES: dict[type[Exception], str] = {
    LockHeldError: "lock_held",
    NoSourceAvailableError: "no_source",
    SourceUnavailableError: "source_unavailable",
    SourceInvalidError: "source_invalid",
    ManifestMissingError: "manifest_missing",
    BackupValidationError: "backup_invalid",
    BackupError: "backup_failed",
    UnclassifiedFileError: "unclassified_files",
    MergeConflictError: "merge_conflict",
    MigrationRegistryError: "migration_registry",
    MigrationFailedError: "migration_failed",
    UpgradeValidationError: "validation_failed",
    RestoreError: "rollback_failed",
    RollbackFailedError: "rollback_failed",
}


def _error_type(error: BaseException) -> str:
    if isinstance(error, KeyboardInterrupt):
        return "interrupted"
    for error_cls, error_type in ERROR_TYPES.items():
        if isinstance(error, error_cls):
            return error_type
    if isinstance(error, OSError):
        return "io_error"
    return "upgrade_failed"


def _is_unexpected(error: BaseException) -> bool:
    return not isinstance(error, (RefitError, OSError, KeyboardInterrupt))


def _to_upgrade_error(phase: UpgradePhase, error: BaseException) -> UpgradeError:
    details: dict[str, str] = {}
    if isinstance(error, BackupValidationError):
        details["backup_path"] = str(error.backup_path)
    if isinstance(error, MigrationFailedError):
        details["migration_version"] = error.version
    if isinstance(error, NoSourceAvailableError):
        details["attempts"] = "; ".join(error.attempts)
    message = str(error) if not isinstance(error, KeyboardInterrupt) else "Interrupted by user"
    return UpgradeError(
        phase=phase.value, error_type=_error_type(error), message=message, details=details
    )


@dataclass
class _Run:
    """Mutable bookkeeping for a single run."""

    options: UpgradeOptions
    resolved: ResolvedSource | None = None
    plan: UpgradePlan | None = None
    file_plan: FilePlan | None = None
    registry: MigrationRegistry | None = None
    backup: Backup | None = None
    applied: tuple[MigrationDescriptor, ...] = ()


class UpgradeOrchestrator:
    def __init__(
        self,
        ctx: RefitContext,
        *,
        implementations: dict[str, MigrationFn] = MIGRATION_IMPLEMENTATIONS,
    ) -> None:
        self._ctx = ctx
        self._implementations = implementations
        self._resolver = VersionResolver(ctx)
        self._backups = BackupManager(ctx)
        self._merger = FileMerger(ctx)

    def run(self, options: UpgradeOptions) -> UpgradeResult:
        """Run an upgrade; failures come back as UpgradeResult.error, never raised.

        KeyboardInterrupt before any mutation ends in ABORTED, after it in a
        rollback. Only an interrupt during the rollback itself propagates.
        """
        machine = UpgradeStateMachine(self._ctx.time)
        run = _Run(options=options)
        lock = UpgradeLock(self._ctx.lock_path, self._ctx.time)
        try:
            lock.acquire()
        except LockHeldError as e:
            machine.transition(UpgradePhase.ABORTED)
            return self._result(machine, run, error=_to_upgrade_error(UpgradePhase.IDLE, e))

        try:
            return self._run_locked(machine, run)
        finally:
            if run.resolved is not None and run.resolved.staging_dir is not None:
                shutil.rmtree(run.resolved.staging_dir, ignore_errors=True)
            lock.release()

    def _run_locked(self, machine: UpgradeStateMachine, run: _Run) -> UpgradeResult:
        options = run.options
        try:
            machine.transition(UpgradePhase.DETECTING_SOURCE)
            run.resolved = SourceDetector(self._ctx, self._resolver).detect(options)

            machine.transition(UpgradePhase.PREVIEWING)
            self._build_plan(run)
            plan = run.plan
            assert plan is not None

            if plan.up_to_date:
                logger.info("Already at %s; nothing to do", plan.from_version)
                machine.transition(UpgradePhase.COMPLETE)
                return self._result(machine, run)

            if options.dry_run:
                machine.transition(UpgradePhase.STOPPED)
                return self._result(machine, run)

            if plan.merge_conflicts:
                raise MergeConflictError(
                    ", ".join(plan.files_to_merge), "\n".join(plan.merge_conflicts)
                )

            if not options.skip_confirmation:
                machine.transition(UpgradePhase.AWAITING_CONFIRMATION)
                confirmed = self._ctx.prompter.confirm(
                    f"Upgrade {self._ctx.config.kit_name} from {plan.from_version} "
                    f"to {plan.to_version} using {plan.source.describe()}?",
                    default=False,
                )
                if not confirmed:
                    machine.transition(UpgradePhase.ABORTED)
                    declined = UpgradeError(
                        phase=UpgradePhase.AWAITING_CONFIRMATION.value,
                        error_type="declined",
                        message="Upgrade cancelled",
                        details={},
                    )
                    return self._result(machine, run, error=declined)

            machine.transition(UpgradePhase.BACKING_UP)
            run.backup = self._backups.create_backup(self._ctx.install_dir)
            validation = self._backups.validate_backup(run.backup.path)
            if not validation.valid:
                raise BackupValidationError(run.backup.path, validation.errors)
        except (Exception, KeyboardInterrupt) as e:
            failed_phase = machine.phase
            logger.error(
                "Upgrade aborted during %s: %s", failed_phase.value, e, exc_info=_is_unexpected(e)
            )
            machine.transition(UpgradePhase.ABORTED)
            return self._result(machine, run, error=_to_upgrade_error(failed_phase, e))

        try:
            self._mutate(machine, run)
        except (Exception, KeyboardInterrupt) as e:
            failed_phase = machine.phase
            logger.error(
                "Upgrade failed during %s: %s", failed_phase.value, e, exc_info=_is_unexpected(e)
            )
            return self._rollback(machine, run, _to_upgrade_error(failed_phase, e))

        machine.transition(UpgradePhase.COMPLETE)
        logger.info("Upgrade to %s complete", plan.to_version)
        return self._result(machine, run)

    def _build_plan(self, run: _Run) -> None:
        resolved = run.resolved
        assert resolved is not None
        info = resolved.version_info

        if resolved.tree_dir is None:
            file_plan = FilePlan((), (), (), ())
            migrations: tuple[MigrationDescriptor, ...] = ()
        else:
            file_plan = self._merger.plan_files(resolved.tree_dir, self._ctx.install_dir)
            run.registry = load_migration_registry(resolved.tree_dir, self._implementations)
            migrations = tuple(run.registry.get_applicable_migrations(info.current, info.latest))

        conflicts = tuple(
            f"{outcome.relative_path}:\n{outcome.result.render_diff()}"
            for outcome in file_plan.conflicts
            if outcome.result is not None
        )
        run.file_plan = file_plan
        run.plan = UpgradePlan(
            files_to_overwrite=file_plan.files_to_overwrite,
            files_to_preserve=file_plan.files_to_preserve,
            files_to_merge=file_plan.files_to_merge,
            applicable_migrations=migrations,
            from_version=info.current,
            to_version=info.latest,
            dry_run=run.options.dry_run,
            bump_kind=info.bump_kind,
            source=resolved.source,
            merge_conflicts=conflicts,
        )

    def _mutate(self, machine: UpgradeStateMachine, run: _Run) -> None:
        resolved, plan, file_plan = run.resolved, run.plan, run.file_plan
        assert resolved is not None and resolved.tree_dir is not None
        assert plan is not None and file_plan is not None and run.registry is not None
        install_dir = self._ctx.install_dir

        machine.transition(UpgradePhase.MERGING)
        summary = self._merger.apply_upgrade(file_plan, resolved.tree_dir, install_dir)
        logger.info(
            "Files: %d overwritten, %d preserved, %d merged, %d seeded",
            summary.overwritten,
            summary.preserved,
            summary.merged,
            summary.seeded,
        )

        machine.transition(UpgradePhase.MIGRATING)
        migration_result = MigrationRunner(run.registry).run_migrations(
            list(plan.applicable_migrations),
            MigrationContext(
                install_dir=install_dir,
                from_version=plan.from_version,
                to_version=plan.to_version,
            ),
        )
        run.applied = migration_result.applied
        if migration_result.error is not None:
            raise migration_result.error

        machine.transition(UpgradePhase.VALIDATING)
        self._validate_upgrade(plan)
        self._merger.save_baseline(file_plan, resolved.tree_dir)

    def _validate_upgrade(self, plan: UpgradePlan) -> None:
        install_dir = self._ctx.install_dir
        manifest = require_manifest(install_dir)
        try:
            installed = Version(manifest.version)
        except InvalidVersion as e:
            raise UpgradeValidationError(
                f"Installed manifest has an invalid version after upgrade: {e}"
            ) from e
        if installed != Version(plan.to_version):
            raise UpgradeValidationError(
                f"Installed version is {manifest.version} after upgrade, "
                f"expected {plan.to_version}"
            )

        missing = [p for p in CRITICAL_PATHS if not (install_dir / p).exists()]
        if missing:
            raise UpgradeValidationError(f"Critical paths missing after upgrade: {missing}")

        for argv in self._ctx.config.post_upgrade_commands:
            command = shlex.join(argv)
            logger.info("Running post-upgrade command: %s", command)
            outcome = self._ctx.command_runner.run(argv, cwd=install_dir)
            if not outcome.succeeded:
                raise UpgradeValidationError(
                    f"Post-upgrade command `{command}` failed: {outcome.failure_reason()}"
                )

    def _rollback(
        self, machine: UpgradeStateMachine, run: _Run, cause: UpgradeError
    ) -> UpgradeResult:
        assert run.backup is not None
        machine.transition(UpgradePhase.ROLLING_BACK)
        logger.warning("Rolling back %s from %s", self._ctx.install_dir, run.backup.path)
        try:
            self._backups.restore_backup(
                run.backup.path, self._ctx.install_dir, preserve_regenerable=True
            )
        except Exception as e:
            logger.error("Rollback failed: %s", e, exc_info=_is_unexpected(e))
            machine.transition(UpgradePhase.FATAL)
            fatal = UpgradeError(
                phase=UpgradePhase.ROLLING_BACK.value,
                error_type="rollback_failed",
                message=(
                    f"{cause.message}\n\nRollback also failed: {e}\n"
                    f"Restore manually from {run.backup.path}"
                ),
                details={
                    **cause.details,
                    "backup_path": str(run.backup.path),
                    "cause_phase": cause.phase,
                    "cause_type": cause.error_type,
                },
            )
            return self._result(machine, run, error=fatal)

        machine.transition(UpgradePhase.ROLLED_BACK)
        logger.info("Rolled back to %s", run.backup.source_version)
        return self._result(machine, run, error=cause, rolled_back=True)

    def _result(
        self,
        machine: UpgradeStateMachine,
        run: _Run,
        *,
        error: UpgradeError | None = None,
        rolled_back: bool = False,
    ) -> UpgradeResult:
        return UpgradeResult(
            succeeded=error is None,
            applied_migrations=run.applied,
            backup_id=run.backup.id if run.backup is not None else None,
            rolled_back=rolled_back,
            error=error,
            final_phase=machine.phase,
            plan=run.plan,
            backup_path=run.backup.path if run.backup is not None else None,
            phases=machine.visited(),
        )


def upgrade(options: UpgradeOptions, *, ctx: RefitContext | None = None) -> UpgradeResult:
    """Upgrade the kit installed under ctx.cwd (default: the current directory)."""
    if ctx is None:
        ctx = create_context(Path.cwd())
    return UpgradeOrchestrator(ctx).run(options)
