"""Tests for VersionResolver."""

from pathlib import Path

import pytest

from refit.core.errors import ManifestMissingError, SourceInvalidError, SourceUnavailableError
from refit.gateway.registry.fake import FakeRegistryClient
from refit.versioning.models import BumpKind, LocalSource, RegistrySource
from refit.versioning.resolver import VersionResolver, compute_bump_kind
from tests.test_utils.kit_builders import build_context, write_kit

REGISTRY = RegistrySource("https://registry.test/refit-kit")


@pytest.mark.parametrize(
    ("current", "latest", "expected"),
    [
        ("1.0.0", "2.0.0", BumpKind.MAJOR),
        ("1.0.0", "1.2.0", BumpKind.MINOR),
        ("1.2.0", "1.2.3", BumpKind.PATCH),
        ("1.2.0", "1.2.0", BumpKind.NONE),
        ("1.2.0", "1.1.9", BumpKind.NONE),
        ("1.9.0", "1.10.0", BumpKind.MINOR),
    ],
)
def test_compute_bump_kind(current: str, latest: str, expected: BumpKind) -> None:
    assert compute_bump_kind(current, latest) is expected


def test_get_current_version(tmp_project: Path) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    resolver = VersionResolver(build_context(tmp_project))

    assert resolver.get_current_version() == "1.0.0"


def test_get_current_version_without_manifest_raises(tmp_project: Path) -> None:
    resolver = VersionResolver(build_context(tmp_project))

    with pytest.raises(ManifestMissingError):
        resolver.get_current_version()


def test_get_current_version_rejects_invalid_version(tmp_project: Path) -> None:
    write_kit(tmp_project / "kit", version="not-a-version")
    resolver = VersionResolver(build_context(tmp_project))

    with pytest.raises(ManifestMissingError, match="invalid version"):
        resolver.get_current_version()


def test_latest_from_registry_uses_dist_tag_and_timeout(tmp_project: Path) -> None:
    registry = FakeRegistryClient(trees={}, latest="1.2.0")
    resolver = VersionResolver(build_context(tmp_project, registry=registry))

    assert resolver.get_latest_version(REGISTRY) == "1.2.0"
    assert registry.requested_timeouts == [3.0]


def test_latest_from_unreachable_registry_is_none(tmp_project: Path) -> None:
    resolver = VersionResolver(build_context(tmp_project))

    assert resolver.get_latest_version(REGISTRY) is None


def test_latest_from_registry_without_tag_is_none(tmp_project: Path) -> None:
    registry = FakeRegistryClient(trees={}, latest=None)
    resolver = VersionResolver(build_context(tmp_project, registry=registry))

    assert resolver.get_latest_version(REGISTRY) is None


def test_latest_from_local_requires_matching_name(tmp_project: Path) -> None:
    good = write_kit(tmp_project.parent / "good", version="1.3.0")
    other = write_kit(tmp_project.parent / "other", version="9.0.0", name="someone-else")
    resolver = VersionResolver(build_context(tmp_project))

    assert resolver.get_latest_version(LocalSource(good)) == "1.3.0"
    assert resolver.get_latest_version(LocalSource(other)) is None


def test_check_for_updates(tmp_project: Path) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    registry = FakeRegistryClient(trees={}, latest="1.2.0")
    resolver = VersionResolver(build_context(tmp_project, registry=registry))

    check = resolver.check_for_updates(REGISTRY)

    assert check.has_update
    assert check.bump_kind is BumpKind.MINOR
    assert check.current == "1.0.0"
    assert check.latest == "1.2.0"
    assert check.error is None


def test_check_for_updates_reports_unreachable_source(tmp_project: Path) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    resolver = VersionResolver(build_context(tmp_project))

    check = resolver.check_for_updates(REGISTRY)

    assert not check.has_update
    assert check.latest is None
    assert check.error is not None


def test_resolve_version_info_latest(tmp_project: Path) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    registry = FakeRegistryClient(trees={}, latest="2.0.0")
    resolver = VersionResolver(build_context(tmp_project, registry=registry))

    info = resolver.resolve_version_info(REGISTRY, "latest")

    assert (info.current, info.latest, info.bump_kind) == ("1.0.0", "2.0.0", BumpKind.MAJOR)


def test_resolve_version_info_explicit_target_must_be_offered(tmp_project: Path) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    release = write_kit(tmp_project.parent / "r110", version="1.1.0")
    registry = FakeRegistryClient(trees={"1.1.0": release}, latest="1.1.0")
    resolver = VersionResolver(build_context(tmp_project, registry=registry))

    assert resolver.resolve_version_info(REGISTRY, "1.1.0").latest == "1.1.0"
    with pytest.raises(SourceInvalidError, match="1.5.0"):
        resolver.resolve_version_info(REGISTRY, "1.5.0")
    with pytest.raises(SourceInvalidError, match="Invalid target"):
        resolver.resolve_version_info(REGISTRY, "banana")


def test_resolve_version_info_unreachable_raises(tmp_project: Path) -> None:
    write_kit(tmp_project / "kit", version="1.0.0")
    resolver = VersionResolver(build_context(tmp_project))

    with pytest.raises(SourceUnavailableError):
        resolver.resolve_version_info(REGISTRY, "latest")


def test_check_source_availability(tmp_project: Path) -> None:
    resolver = VersionResolver(build_context(tmp_project))

    registry_result = resolver.check_source_availability(REGISTRY)
    assert not registry_result.available
    assert registry_result.reason == "Request timed out"

    assert resolver.check_source_availability(LocalSource(tmp_project)).available
    missing = resolver.check_source_availability(LocalSource(tmp_project / "nope"))
    assert not missing.available


def test_validate_local_source(tmp_project: Path) -> None:
    resolver = VersionResolver(build_context(tmp_project))
    good = write_kit(tmp_project.parent / "good", version="1.1.0")
    wrong_name = write_kit(tmp_project.parent / "wrong", version="1.1.0", name="other-kit")
    incomplete = write_kit(tmp_project.parent / "incomplete", version="1.1.0")
    for child in (incomplete / "guidelines").iterdir():
        child.unlink()
    (incomplete / "guidelines").rmdir()

    assert resolver.validate_local_source(good)
    assert not resolver.validate_local_source(wrong_name)
    assert not resolver.validate_local_source(incomplete)
    assert not resolver.validate_local_source(tmp_project.parent / "missing")


def test_detect_local_source_checks_candidates_in_order(tmp_project: Path) -> None:
    write_kit(tmp_project.parent / "kit-latest", version="1.4.0")
    resolver = VersionResolver(build_context(tmp_project))

    found = resolver.detect_local_source()

    assert found == (tmp_project.parent / "kit-latest").resolve()


def test_detect_local_source_none(tmp_project: Path) -> None:
    resolver = VersionResolver(build_context(tmp_project))

    assert resolver.detect_local_source() is None
