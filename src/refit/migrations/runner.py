"""Sequential, fail-fast execution of migrations."""

import logging

from refit.core.errors import MigrationFailedError
from refit.migrations.models import MigrationContext, MigrationDescriptor, MigrationRunResult
from refit.migrations.registry import MigrationRegistry

logger = logging.getLogger(__name__)


class MigrationRunner:
    def __init__(self, registry: MigrationRegistry) -> None:
        self._registry = registry

    def run_migrations(
        self, migrations: list[MigrationDescriptor], context: MigrationContext
    ) -> MigrationRunResult:
        """Run migrations in order, stopping at the first failure.

        A failed migration is never retried. Changes made by migrations that
        already ran are left in place; undoing them is the caller's job
        (the orchestrator restores the pre-upgrade backup).
        """
        applied: list[MigrationDescriptor] = []
        for descriptor in migrations:
            implementation = self._registry.implementation_for(descriptor)
            logger.info("Running migration %s: %s", descriptor.version, descriptor.description)
            try:
                implementation(context)
            except Exception as e:
                logger.error("Migration %s failed: %s", descriptor.version, e)
                return MigrationRunResult(
                    applied=tuple(applied),
                    failed=descriptor,
                    error=MigrationFailedError(descriptor.version, descriptor.description, e),
                )
            applied.append(descriptor)

        return MigrationRunResult(applied=tuple(applied), failed=None, error=None)
