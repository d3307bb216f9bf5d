"""Tests for checkpoint persistence and the filesystem workspace store."""

import json
from pathlib import Path

import pytest

from sourcepull.models import (
    AggregateSourceElements,
    ElementState,
    FileProperty,
    RevisionCheckpoint,
    TrackedMember,
    member_key,
)
from sourcepull.storage.checkpoint_store import CheckpointStoreError, JsonCheckpointStore
from sourcepull.storage.workspace_store import FileSystemWorkspaceStore, WorkspaceWriteError


class TestJsonCheckpointStore:
    def test_missing_environment_loads_none(self, tmp_path: Path) -> None:
        assert JsonCheckpointStore(tmp_path).load("nobody@example.com") is None

    def test_saved_checkpoint_survives_a_new_store_instance(self, tmp_path: Path) -> None:
        checkpoint = RevisionCheckpoint(environment="dev@example.com", max_revision=7)
        checkpoint.members[member_key("ApexClass", "Foo")] = TrackedMember(
            type="ApexClass", full_name="Foo", local_revision=7, remote_revision=7
        )

        JsonCheckpointStore(tmp_path).save(checkpoint)
        loaded = JsonCheckpointStore(tmp_path).load("dev@example.com")

        assert loaded == checkpoint

    def test_environments_are_kept_apart(self, tmp_path: Path) -> None:
        store = JsonCheckpointStore(tmp_path)
        store.save(RevisionCheckpoint(environment="a", max_revision=1))
        store.save(RevisionCheckpoint(environment="b", max_revision=2))

        assert store.load("a").max_revision == 1
        assert store.load("b").max_revision == 2
        assert store.path_for("a") != store.path_for("b")

    def test_corrupt_checkpoint_raises(self, tmp_path: Path) -> None:
        store = JsonCheckpointStore(tmp_path)
        path = store.path_for("dev")
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CheckpointStoreError):
            store.load("dev")

    def test_save_leaves_no_temp_files(self, tmp_path: Path) -> None:
        store = JsonCheckpointStore(tmp_path)
        store.save(RevisionCheckpoint(environment="dev"))
        store.save(RevisionCheckpoint(environment="dev", max_revision=3))

        assert [p.name for p in store.path_for("dev").parent.iterdir()] == ["maxRevision.json"]


def _retrieved(target_dir: Path, file_name: str, content: str) -> FileProperty:
    path = target_dir / file_name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return FileProperty(type="ApexClass", full_name=Path(file_name).stem, file_name=file_name)


class TestFileSystemWorkspaceStore:
    def _apply(self, store, target_dir, props, **commit_kwargs):
        aggregate = AggregateSourceElements("default")
        for prop in props:
            store.process_entry(aggregate, target_dir, prop, {})
        return store.commit(
            aggregate,
            None,
            commit_kwargs.get("skip_duplicate_check", True),
            commit_kwargs.get("unsupported_mime_types", []),
            commit_kwargs.get("force_overwrite", False),
        )

    def test_states_reflect_local_content(self, tmp_path: Path) -> None:
        store = FileSystemWorkspaceStore(tmp_path / "ws", {"default": "force-app"})
        target = tmp_path / "retrieve"

        first = self._apply(store, target, [_retrieved(target, "classes/Foo.cls", "v1")])
        same = self._apply(store, target, [_retrieved(target, "classes/Foo.cls", "v1")])
        changed = self._apply(store, target, [_retrieved(target, "classes/Foo.cls", "v2")])

        assert [e.state for e in first.get_all_workspace_elements()] == [ElementState.NEW]
        assert [e.state for e in same.get_all_workspace_elements()] == [ElementState.UNCHANGED]
        assert [e.state for e in changed.get_all_workspace_elements()] == [ElementState.CHANGED]
        assert (tmp_path / "ws" / "force-app" / "classes" / "Foo.cls").read_text() == "v2"

    def test_files_nested_under_unpackaged_are_found(self, tmp_path: Path) -> None:
        store = FileSystemWorkspaceStore(tmp_path / "ws")
        target = tmp_path / "retrieve"
        _retrieved(target, "unpackaged/classes/Foo.cls", "body")

        self._apply(
            store,
            target,
            [FileProperty(type="ApexClass", full_name="Foo", file_name="classes/Foo.cls")],
        )

        assert (tmp_path / "ws" / "default" / "classes" / "Foo.cls").read_text() == "body"

    def test_missing_retrieved_file_raises(self, tmp_path: Path) -> None:
        store = FileSystemWorkspaceStore(tmp_path / "ws")

        with pytest.raises(WorkspaceWriteError):
            self._apply(
                store,
                tmp_path,
                [FileProperty(type="ApexClass", full_name="Foo", file_name="classes/Foo.cls")],
            )

    def test_unsupported_mime_types_are_skipped(self, tmp_path: Path) -> None:
        store = FileSystemWorkspaceStore(tmp_path / "ws")
        target = tmp_path / "retrieve"

        committed = self._apply(
            store,
            target,
            [
                _retrieved(target, "staticresources/logo.png", "png"),
                _retrieved(target, "classes/Foo.cls", "body"),
            ],
            unsupported_mime_types=["image/png"],
        )

        assert [e.file_path for e in committed.get_all_workspace_elements()] == [
            "default/classes/Foo.cls"
        ]
        assert not (tmp_path / "ws" / "default" / "staticresources" / "logo.png").exists()

    def test_locally_modified_obsolete_file_is_kept_unless_forced(self, tmp_path: Path) -> None:
        store = FileSystemWorkspaceStore(tmp_path / "ws")
        target = tmp_path / "retrieve"
        self._apply(store, target, [_retrieved(target, "classes/Foo.cls", "v1")])
        local = tmp_path / "ws" / "default" / "classes" / "Foo.cls"
        local.write_text("edited locally", encoding="utf-8")

        aggregate = AggregateSourceElements("default")
        store.remove_obsolete(aggregate, "Foo", "ApexClass")
        kept = store.commit(aggregate, None, True, [], False)

        assert kept.get_all_workspace_elements() == []
        assert local.exists()

        aggregate = AggregateSourceElements("default")
        store.remove_obsolete(aggregate, "Foo", "ApexClass")
        removed = store.commit(aggregate, None, True, [], True)

        assert [e.state for e in removed.get_all_workspace_elements()] == [ElementState.DELETED]
        assert not local.exists()

    def test_duplicate_owners_rejected_when_checked(self, tmp_path: Path) -> None:
        store = FileSystemWorkspaceStore(tmp_path / "ws")
        target = tmp_path / "retrieve"
        prop = _retrieved(target, "classes/Foo.cls", "body")
        aggregate = AggregateSourceElements("default")
        store.process_entry(aggregate, target, prop, {})
        store.process_entry(
            aggregate,
            target,
            prop,
            {prop.file_name: FileProperty(type="ApexClass", full_name="Other", file_name="x")},
        )

        with pytest.raises(WorkspaceWriteError, match="Duplicate"):
            store.commit(aggregate, None, False, [], False)

    def test_index_records_member_files(self, tmp_path: Path) -> None:
        store = FileSystemWorkspaceStore(tmp_path / "ws", index_dir=".state")
        target = tmp_path / "retrieve"
        _retrieved(target, "classes/Foo.cls-meta.xml", "<meta/>")
        self._apply(
            store,
            target,
            [
                _retrieved(target, "classes/Foo.cls", "body"),
                FileProperty(type="ApexClass", full_name="Foo", file_name="classes/Foo.cls-meta.xml"),
            ],
        )

        index = json.loads((tmp_path / "ws" / ".state" / "workspace-index.json").read_text())

        assert sorted(index[member_key("ApexClass", "Foo")]["files"]) == [
            "default/classes/Foo.cls",
            "default/classes/Foo.cls-meta.xml",
        ]
        assert store.files_for("ApexClass", "Foo") == sorted(index[member_key("ApexClass", "Foo")]["files"])

    def test_file_names_escaping_the_workspace_are_rejected(self, tmp_path: Path) -> None:
        store = FileSystemWorkspaceStore(tmp_path / "ws")
        target = tmp_path / "retrieve"
        target.mkdir()

        with pytest.raises(WorkspaceWriteError, match="outside the workspace"):
            self._apply(
                store,
                target,
                [FileProperty(type="ApexClass", full_name="Esc", file_name="../../escaped.cls")],
            )

        assert not (tmp_path / "escaped.cls").exists()
        assert store.files_for("ApexClass", "Esc") == []
