"""Plan and apply the file-level part of an upgrade.

Every file of the incoming tree is assigned a FileStrategy by the strategy
table. Planning is pure; apply_upgrade is the only operation here that
writes into the install dir.
"""

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from refit.core.context import RefitContext
from refit.core.errors import MergeConflictError, UnclassifiedFileError
from refit.core.layout import USER_CONFIG_FILENAME
from refit.core.tree import iter_tree_files
from refit.merge.config_merge import ConfigMergeResult, merge_config
from refit.merge.strategy import FileStrategy, StrategyTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileMergeOutcome:
    """Dry-computed result for one MERGE file.

    result is None when there is nothing to merge: the user has no copy
    (it will be seeded from incoming) or no baseline exists (the user's
    copy is kept as-is).
    """

    relative_path: str
    result: ConfigMergeResult | None
    note: str


@dataclass(frozen=True)
class FilePlan:
    files_to_overwrite: tuple[str, ...]
    files_to_preserve: tuple[str, ...]
    files_to_merge: tuple[str, ...]
    merges: tuple[FileMergeOutcome, ...]

    @property
    def conflicts(self) -> tuple[FileMergeOutcome, ...]:
        return tuple(m for m in self.merges if m.result is not None and m.result.conflicted)


@dataclass(frozen=True)
class ApplySummary:
    overwritten: int
    preserved: int
    merged: int
    seeded: int


def _read_json_object(path: Path, relative_path: str) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MergeConflictError(relative_path, f"  {path} is not valid UTF-8 JSON: {e}") from e
    if not isinstance(data, dict):
        raise MergeConflictError(relative_path, f"  {path} does not contain a JSON object")
    return data


def _copy_file(source: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)


class FileMerger:
    """Applies an incoming kit tree onto the install dir, file by file."""

    def __init__(self, ctx: RefitContext, table: StrategyTable | None = None) -> None:
        self._ctx = ctx
        if table is None:
            table = StrategyTable.from_overrides(ctx.config.strategies)
        self._table = table

    @property
    def table(self) -> StrategyTable:
        return self._table

    def determine_file_strategy(self, relative_path: str) -> FileStrategy:
        """Strategy for a POSIX path relative to the install dir.

        Raises:
            UnclassifiedFileError: If no rule matches
        """
        return self._table.determine_file_strategy(relative_path)

    def merge_file(
        self, relative_path: str, incoming_dir: Path, install_dir: Path
    ) -> FileMergeOutcome:
        """Dry-compute the merge of one MERGE file. Writes nothing."""
        user_path = install_dir / relative_path
        if not user_path.exists():
            return FileMergeOutcome(relative_path, None, "not installed; seeding from incoming")

        base_path = self._ctx.baseline_dir / relative_path
        if not base_path.exists():
            logger.warning("No baseline for %s; keeping the user's copy unmerged", relative_path)
            return FileMergeOutcome(relative_path, None, "no baseline; keeping user copy")

        result = merge_config(
            _read_json_object(base_path, relative_path),
            _read_json_object(user_path, relative_path),
            _read_json_object(incoming_dir / relative_path, relative_path),
            validate_schema=relative_path == USER_CONFIG_FILENAME,
        )
        note = "conflict" if result.conflicted else f"{len(result.user_changes)} user change(s)"
        return FileMergeOutcome(relative_path, result, note)

    def plan_files(self, incoming_dir: Path, install_dir: Path) -> FilePlan:
        """Classify every file of the incoming tree and dry-run the merges.

        Raises:
            UnclassifiedFileError: If any file matches no rule or more than one
            MergeConflictError: If a MERGE file is not a JSON object
        """
        paths = [p.as_posix() for p in iter_tree_files(incoming_dir, self._ctx.config.exclude)]

        report = self._table.validate_exhaustive(paths)
        if not report.ok:
            raise UnclassifiedFileError(report.unclassified, report.ambiguous)

        overwrite: list[str] = []
        preserve: list[str] = []
        merge: list[str] = []
        buckets = {
            FileStrategy.OVERWRITE: overwrite,
            FileStrategy.PRESERVE: preserve,
            FileStrategy.MERGE: merge,
        }
        for path in paths:
            buckets[self._table.determine_file_strategy(path)].append(path)

        merges = tuple(self.merge_file(path, incoming_dir, install_dir) for path in merge)
        return FilePlan(
            files_to_overwrite=tuple(overwrite),
            files_to_preserve=tuple(preserve),
            files_to_merge=tuple(merge),
            merges=merges,
        )

    def apply_upgrade(
        self, plan: FilePlan, incoming_dir: Path, install_dir: Path
    ) -> ApplySummary:
        """Write the incoming tree into the install dir according to plan.

        All merges are computed before the first write, so a conflict leaves
        the install dir untouched.

        Raises:
            MergeConflictError: If any merge conflicts
        """
        merged_documents: dict[str, dict] = {}
        seed_from_incoming: list[str] = []
        for path in plan.files_to_merge:
            outcome = self.merge_file(path, incoming_dir, install_dir)
            if outcome.result is None:
                if not (install_dir / path).exists():
                    seed_from_incoming.append(path)
                continue
            if outcome.result.conflicted:
                raise MergeConflictError(path, outcome.result.render_diff())
            merged_documents[path] = outcome.result.merged

        for path in plan.files_to_overwrite:
            _copy_file(incoming_dir / path, install_dir / path)
        logger.debug("Overwrote %d file(s)", len(plan.files_to_overwrite))

        for path, document in merged_documents.items():
            target = install_dir / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
            logger.debug("Merged %s", path)

        for path in plan.files_to_preserve:
            if not (install_dir / path).exists():
                seed_from_incoming.append(path)
        for path in seed_from_incoming:
            _copy_file(incoming_dir / path, install_dir / path)
            logger.debug("Seeded %s from incoming", path)

        return ApplySummary(
            overwritten=len(plan.files_to_overwrite),
            preserved=len(plan.files_to_preserve),
            merged=len(merged_documents),
            seeded=len(seed_from_incoming),
        )

    def save_baseline(self, plan: FilePlan, incoming_dir: Path) -> None:
        """Record the shipped copies of user-editable files as the next merge base."""
        baseline_dir = self._ctx.baseline_dir
        partial_dir = baseline_dir.with_name(baseline_dir.name + ".partial")
        if partial_dir.exists():
            shutil.rmtree(partial_dir)
        partial_dir.mkdir(parents=True)
        for path in (*plan.files_to_preserve, *plan.files_to_merge):
            _copy_file(incoming_dir / path, partial_dir / path)

        if baseline_dir.exists():
            shutil.rmtree(baseline_dir)
        partial_dir.rename(baseline_dir)
