"""Tests for retrieval manifest creation."""

import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from sourcepull.models import ObsoleteName, Package, TrackedMember
from sourcepull.sync.manifest_builder import MANIFEST_FILENAME, ManifestBuilder, read_manifest

member_names = st.text(min_size=1, max_size=20, alphabet="abcdefghijklmnopqrstuvwxyzABC_0123456789")


def test_package_without_members_yields_empty_sentinel_without_io(tmp_path: Path) -> None:
    output_dir = tmp_path / "never-created"
    package = Package(name="default", obsolete_names=[ObsoleteName(full_name="Old", type="ApexClass")])

    manifest = ManifestBuilder("58.0").build(package, output_dir)

    assert manifest.is_empty
    assert manifest.file is None
    assert not output_dir.exists()


@given(
    members=st.lists(
        st.tuples(st.sampled_from(["ApexClass", "ApexPage", "CustomObject"]), member_names),
        min_size=1,
        max_size=20,
        unique=True,
    )
)
@settings(max_examples=50, deadline=None)
def test_manifest_lists_every_member_grouped_by_type(members: list[tuple[str, str]]) -> None:
    package = Package(
        name="default",
        members=[TrackedMember(type=t, full_name=n, remote_revision=1) for t, n in members],
    )

    with tempfile.TemporaryDirectory() as tmp_dir:
        manifest = ManifestBuilder("58.0").build(package, Path(tmp_dir))

        assert manifest.file == Path(tmp_dir) / MANIFEST_FILENAME
        parsed = read_manifest(manifest.file)

    assert sorted(parsed) == sorted(members)
    assert parsed == manifest.members
    assert [t for t, _ in parsed] == sorted(t for t, _ in parsed)


def test_explicit_api_version_overrides_default(tmp_path: Path) -> None:
    package = Package(name="default", members=[TrackedMember(type="ApexClass", full_name="Foo")])

    manifest = ManifestBuilder("58.0").build(package, tmp_path, api_version="60.0")

    assert manifest.version == "60.0"
    assert package.version == "60.0"
    assert "<version>60.0</version>" in manifest.file.read_text(encoding="utf-8")


def test_default_api_version_used_without_override(tmp_path: Path) -> None:
    package = Package(name="default", members=[TrackedMember(type="ApexClass", full_name="Foo")])

    manifest = ManifestBuilder("57.0").build(package, tmp_path)

    assert manifest.version == "57.0"


def test_manifest_override_used_verbatim(tmp_path: Path) -> None:
    override_dir = tmp_path / "prebuilt"
    prebuilt = ManifestBuilder("58.0").build(
        Package(name="x", members=[TrackedMember(type="ApexTrigger", full_name="OnAccount")]),
        override_dir,
    )
    package = Package(name="default", members=[TrackedMember(type="ApexClass", full_name="Foo")])
    output_dir = tmp_path / "out"

    manifest = ManifestBuilder("58.0").build(package, output_dir, manifest_override=prebuilt.file)

    assert manifest.file == prebuilt.file
    assert manifest.members == [("ApexTrigger", "OnAccount")]
    assert not (output_dir / MANIFEST_FILENAME).exists()
