"""Tests for the trash: delete, restore, undo, empty and the deletion log."""

import json
from pathlib import Path

import pytest

from deadweight_cli.errors import TrashBusyError
from deadweight_cli.models import DeletionLogEntry, LogAction
from deadweight_cli.trash import TrashManager
from deadweight_cli.trash_log import DeletionLog


def _delete(manager: TrashManager, paths):
    with manager.writer() as writer:
        return writer.delete(paths)


class TestDelete:
    """Tests for moving files into a trash session."""

    def test_delete_moves_files_and_logs(self, trash_manager: TrashManager):
        root = trash_manager.root
        outcome = _delete(trash_manager, ["src/a.ts", "src/lib/c.ts"])

        assert [item.path for item in outcome.succeeded] == ["src/a.ts", "src/lib/c.ts"]
        assert not (root / "src/a.ts").exists()
        trashed = root / ".deadweight_trash" / "sessions" / outcome.session_id / "src" / "a.ts"
        assert trashed.read_text() == "export const a = 1;\n"

        history = trash_manager.history()
        assert [(e.original_path, e.action) for e in history] == [
            ("src/a.ts", LogAction.DELETE),
            ("src/lib/c.ts", LogAction.DELETE),
        ]
        assert {e.session_id for e in history} == {outcome.session_id}

    def test_absolute_paths_are_accepted(self, trash_manager: TrashManager):
        outcome = _delete(trash_manager, [trash_manager.root / "src" / "b.ts"])
        assert [item.path for item in outcome.succeeded] == ["src/b.ts"]

    def test_invalid_items_fail_individually(self, trash_manager: TrashManager):
        outcome = _delete(trash_manager, [
            "src/a.ts",
            "../outside.ts",
            "src/missing.ts",
            "src/lib",
            ".deadweight_trash/deletions.jsonl",
        ])
        assert len(outcome.succeeded) == 1
        errors = {item.path: item.error for item in outcome.failed}
        assert "outside" in errors["../outside.ts"]
        assert errors["src/missing.ts"] == "not a regular file"
        assert errors["src/lib"] == "not a regular file"
        assert "trash" in errors[".deadweight_trash/deletions.jsonl"]

    def test_sessions_get_distinct_ids(self, trash_manager: TrashManager):
        first = _delete(trash_manager, ["src/a.ts"])
        second = _delete(trash_manager, ["src/b.ts"])
        assert first.session_id != second.session_id
        assert [s.id for s in trash_manager.list_sessions()] == [second.session_id, first.session_id]

    def test_busy_writer(self, trash_manager: TrashManager):
        with trash_manager.writer():
            with pytest.raises(TrashBusyError):
                with trash_manager.writer():
                    pass
        # Released again after the first writer exits.
        with trash_manager.writer():
            pass


class TestRestore:
    """Tests for restore, undo and session restore."""

    def test_round_trip_is_byte_identical(self, trash_manager: TrashManager):
        root = trash_manager.root
        payload = b"\x89PNG\r\n\x1a\n\x00binary"
        (root / "public" / "logo.svg").write_bytes(payload)

        deleted = _delete(trash_manager, ["public/logo.svg", "src/b.ts"])
        with trash_manager.writer() as writer:
            restored = writer.restore_session(deleted.session_id)

        assert len(restored.succeeded) == 2
        assert (root / "public" / "logo.svg").read_bytes() == payload
        assert (root / "src" / "b.ts").read_text() == "export const b = 2;\n"
        assert trash_manager.trashed_entries() == []
        assert trash_manager.list_sessions() == []

        actions = [(e.original_path, e.action) for e in trash_manager.history()]
        assert actions == [
            ("public/logo.svg", LogAction.DELETE),
            ("src/b.ts", LogAction.DELETE),
            ("public/logo.svg", LogAction.RESTORE),
            ("src/b.ts", LogAction.RESTORE),
        ]

    def test_restore_never_overwrites(self, trash_manager: TrashManager):
        root = trash_manager.root
        deleted = _delete(trash_manager, ["src/a.ts", "src/b.ts", "src/lib/c.ts"])
        (root / "src" / "a.ts").write_text("// recreated\n")

        with trash_manager.writer() as writer:
            outcome = writer.restore_session(deleted.session_id)

        assert len(outcome.succeeded) == 2
        assert [item.path for item in outcome.failed] == ["src/a.ts"]
        assert "already exists" in outcome.failed[0].error
        assert (root / "src" / "a.ts").read_text() == "// recreated\n"
        assert [e.original_path for e in trash_manager.trashed_entries()] == ["src/a.ts"]

    def test_restore_folder_prefix(self, trash_manager: TrashManager):
        root = trash_manager.root
        _delete(trash_manager, ["src/lib/c.ts", "src/lib/d.ts", "src/a.ts"])
        with trash_manager.writer() as writer:
            outcome = writer.restore(["src/lib"])
        assert sorted(item.path for item in outcome.succeeded) == ["src/lib/c.ts", "src/lib/d.ts"]
        assert (root / "src/lib/c.ts").exists()
        assert not (root / "src/a.ts").exists()

    def test_restore_picks_latest_copy(self, trash_manager: TrashManager):
        root = trash_manager.root
        _delete(trash_manager, ["src/a.ts"])
        (root / "src" / "a.ts").write_text("second version\n")
        _delete(trash_manager, ["src/a.ts"])

        with trash_manager.writer() as writer:
            outcome = writer.restore(["src/a.ts"])
        assert len(outcome.succeeded) == 1
        assert (root / "src" / "a.ts").read_text() == "second version\n"

    def test_restore_unknown_path(self, trash_manager: TrashManager):
        with trash_manager.writer() as writer:
            outcome = writer.restore(["src/never.ts"])
        assert outcome.failed[0].error == "not found in trash"

    def test_undo_restores_latest_session_only(self, trash_manager: TrashManager):
        root = trash_manager.root
        _delete(trash_manager, ["src/a.ts"])
        _delete(trash_manager, ["src/b.ts"])
        with trash_manager.writer() as writer:
            writer.undo()
        assert (root / "src" / "b.ts").exists()
        assert not (root / "src" / "a.ts").exists()

    def test_undo_with_empty_trash(self, trash_manager: TrashManager):
        with trash_manager.writer() as writer:
            outcome = writer.undo()
        assert outcome.items == []

    def test_undo_never_reaches_past_the_last_batch(self, trash_manager: TrashManager):
        root = trash_manager.root
        first = _delete(trash_manager, ["src/a.ts"])
        second = _delete(trash_manager, ["src/b.ts"])
        with trash_manager.writer() as writer:
            writer.restore_session(second.session_id)
            outcome = writer.undo()

        assert outcome.items == []
        assert trash_manager.undo_target() is None
        assert not (root / "src" / "a.ts").exists()
        assert [s.id for s in trash_manager.list_sessions()] == [first.session_id]

    def test_restore_all(self, trash_manager: TrashManager):
        root = trash_manager.root
        _delete(trash_manager, ["src/a.ts"])
        _delete(trash_manager, ["src/b.ts", "src/lib/d.ts"])
        with trash_manager.writer() as writer:
            outcome = writer.restore_all()
        assert len(outcome.succeeded) == 3
        assert all((root / p).exists() for p in ("src/a.ts", "src/b.ts", "src/lib/d.ts"))


class TestEmpty:
    """Tests for permanently emptying the trash."""

    def test_empty_purges_files(self, trash_manager: TrashManager):
        deleted = _delete(trash_manager, ["src/a.ts", "src/b.ts"])
        with trash_manager.writer() as writer:
            outcome = writer.empty()

        assert len(outcome.succeeded) == 2
        assert trash_manager.trashed_entries() == []
        assert not (trash_manager.sessions_dir / deleted.session_id).exists()
        assert not (trash_manager.root / "src" / "a.ts").exists()
        assert trash_manager.history()[-1].action == LogAction.PURGE


class TestDeletionLog:
    """Tests for the JSON-lines log."""

    def test_missing_log_is_empty(self, temp_dir: Path):
        assert DeletionLog(temp_dir / "deletions.jsonl").read() == []

    def test_append_and_read(self, temp_dir: Path):
        log = DeletionLog(temp_dir / "trash" / "deletions.jsonl")
        entry = DeletionLogEntry("s1", "src/a.ts", ".deadweight_trash/sessions/s1/src/a.ts", LogAction.DELETE, "t")
        log.append(entry)
        assert log.read() == [entry]
        assert json.loads(log.path.read_text())["action"] == "delete"

    def test_corrupt_lines_are_skipped(self, temp_dir: Path):
        path = temp_dir / "deletions.jsonl"
        good = {"session_id": "s1", "original_path": "a.ts", "trashed_path": "t/a.ts",
                "action": "delete", "timestamp": "t"}
        path.write_text(
            json.dumps(good) + "\n"
            + "{truncated\n"
            + json.dumps({"session_id": "s1"}) + "\n"
            + json.dumps({**good, "action": "explode"}) + "\n"
            + "42\n"
        )
        entries = DeletionLog(path).read()
        assert [e.original_path for e in entries] == ["a.ts"]

    def test_trashed_entries_skip_missing_copies(self, trash_manager: TrashManager):
        deleted = _delete(trash_manager, ["src/a.ts", "src/b.ts"])
        (trash_manager.sessions_dir / deleted.session_id / "src" / "a.ts").unlink()
        assert [e.original_path for e in trash_manager.trashed_entries()] == ["src/b.ts"]

    def test_undecodable_log_reads_as_empty(self, temp_dir: Path):
        path = temp_dir / "deletions.jsonl"
        path.write_bytes(b"\xff\xfe\x00garbage")
        assert DeletionLog(path).read() == []

    def test_trash_usable_after_undecodable_log(self, trash_manager: TrashManager):
        trash_manager.log.path.parent.mkdir(parents=True, exist_ok=True)
        trash_manager.log.path.write_bytes(b"\xff\xfe\x00garbage")
        assert trash_manager.list_sessions() == []

        outcome = _delete(trash_manager, ["src/a.ts"])
        assert len(outcome.succeeded) == 1
        assert [s.id for s in trash_manager.list_sessions()] == [outcome.session_id]

        with trash_manager.writer() as writer:
            restored = writer.undo()
        assert len(restored.succeeded) == 1
        assert (trash_manager.root / "src" / "a.ts").exists()

    def test_unreadable_log_reads_as_empty(self, temp_dir: Path):
        path = temp_dir / "deletions.jsonl"
        path.mkdir()
        assert DeletionLog(path).read() == []
