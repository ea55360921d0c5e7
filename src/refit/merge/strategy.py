"""Per-file upgrade strategies and the table that assigns them.

Patterns use gitignore syntax (via pathspec) relative to the install dir:
a leading "/" anchors to the root, a trailing "/" matches a whole subtree.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import pathspec

from refit.core.config import StrategyOverrides
from refit.core.errors import UnclassifiedFileError


class FileStrategy(Enum):
    PRESERVE = "preserve"  # keep the user's copy
    OVERWRITE = "overwrite"  # replace with the incoming copy
    MERGE = "merge"  # three-way merge of user changes onto incoming


@dataclass(frozen=True)
class StrategyRule:
    pattern: str
    strategy: FileStrategy


@dataclass(frozen=True)
class ExhaustivenessReport:
    """Paths that do not map to exactly one strategy rule."""

    unclassified: tuple[str, ...]
    ambiguous: tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.unclassified and not self.ambiguous


DEFAULT_RULES: tuple[StrategyRule, ...] = (
    StrategyRule("/config.json", FileStrategy.PRESERVE),
    StrategyRule("templates/", FileStrategy.OVERWRITE),
    StrategyRule("guidelines/", FileStrategy.OVERWRITE),
    StrategyRule("scripts/", FileStrategy.OVERWRITE),
    StrategyRule("/kit.toml", FileStrategy.OVERWRITE),
    StrategyRule("/config-schema.json", FileStrategy.OVERWRITE),
    StrategyRule("/migrations.toml", FileStrategy.OVERWRITE),
    StrategyRule("/README.md", FileStrategy.OVERWRITE),
    StrategyRule("/QUICKSTART.md", FileStrategy.OVERWRITE),
    StrategyRule("/CHANGELOG.md", FileStrategy.OVERWRITE),
    StrategyRule("/LICENSE", FileStrategy.OVERWRITE),
)


class StrategyTable:
    """Ordered strategy rules with gitignore-style matching."""

    def __init__(self, rules: Iterable[StrategyRule]) -> None:
        self._rules = tuple(rules)
        self._specs = tuple(
            pathspec.PathSpec.from_lines("gitignore", [rule.pattern]) for rule in self._rules
        )

    @property
    def rules(self) -> tuple[StrategyRule, ...]:
        return self._rules

    @staticmethod
    def default() -> "StrategyTable":
        return StrategyTable(DEFAULT_RULES)

    @staticmethod
    def from_overrides(overrides: StrategyOverrides | None) -> "StrategyTable":
        """Build the table from a [strategies] config table.

        Overrides replace the defaults entirely; None yields the defaults.
        """
        if overrides is None:
            return StrategyTable.default()
        rules = [
            *(StrategyRule(p, FileStrategy.PRESERVE) for p in overrides.preserve),
            *(StrategyRule(p, FileStrategy.OVERWRITE) for p in overrides.overwrite),
            *(StrategyRule(p, FileStrategy.MERGE) for p in overrides.merge),
        ]
        return StrategyTable(rules)

    def matching_rules(self, relative_path: str) -> list[StrategyRule]:
        """All rules whose pattern matches a POSIX path relative to the install dir."""
        return [
            rule
            for rule, spec in zip(self._rules, self._specs, strict=True)
            if spec.match_file(relative_path)
        ]

    def determine_file_strategy(self, relative_path: str) -> FileStrategy:
        """Strategy of the first matching rule.

        Raises:
            UnclassifiedFileError: If no rule matches
        """
        matches = self.matching_rules(relative_path)
        if not matches:
            raise UnclassifiedFileError((relative_path,), ())
        return matches[0].strategy

    def validate_exhaustive(self, relative_paths: Iterable[str]) -> ExhaustivenessReport:
        """Check that every path matches exactly one rule."""
        unclassified: list[str] = []
        ambiguous: list[str] = []
        for path in relative_paths:
            count = len(self.matching_rules(path))
            if count == 0:
                unclassified.append(path)
            elif count > 1:
                ambiguous.append(path)
        return ExhaustivenessReport(unclassified=tuple(unclassified), ambiguous=tuple(ambiguous))
