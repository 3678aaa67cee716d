"""Tests for RecordLedgerService."""

from datetime import timedelta

import pytest

from models import SyncRecord, SyncRecordAction, SyncRecordSource
from services.exceptions import ValidationError
from services.record_ledger_service import (
    REASON_MAX_LENGTH,
    ActionCounts,
    LedgerEntry,
    RecordLedgerService,
)
from tests.fixtures import T1, T2, open_session


def _entry(path, action=SyncRecordAction.CREATED, source=SyncRecordSource.DEVICE, **kwargs):
    return LedgerEntry(file_path=path, action=action, source=source, **kwargs)


class TestIngest:
    """Tests for RecordLedgerService.ingest."""

    def test_inserts_new_records(self, db, sync_session):
        result = RecordLedgerService.ingest(
            db, sync_session, [_entry("a.mp3"), _entry("b.mp3", SyncRecordAction.SKIPPED)]
        )
        db.commit()

        assert result.inserted == 2
        assert result.ignored == 0
        assert result.received == 2
        assert db.query(SyncRecord).count() == 2

    def test_same_chunk_twice_is_idempotent(self, db, sync_session):
        chunk = [_entry("a.mp3"), _entry("b.mp3", SyncRecordAction.ERROR, error_message="bad")]
        RecordLedgerService.ingest(db, sync_session, chunk)
        db.commit()
        first = RecordLedgerService.count_actions(db, sync_session.id)

        result = RecordLedgerService.ingest(db, sync_session, chunk)
        db.commit()

        assert result.inserted == 0
        assert result.ignored == 2
        assert db.query(SyncRecord).count() == 2
        assert RecordLedgerService.count_actions(db, sync_session.id) == first

    def test_first_entry_for_path_in_chunk_wins(self, db, sync_session):
        result = RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3"), _entry("./a.mp3", SyncRecordAction.ERROR)],
        )
        db.commit()

        assert result.inserted == 1
        assert result.ignored == 1
        assert db.query(SyncRecord).one().action is SyncRecordAction.CREATED

    def test_paths_canonicalised(self, db, sync_session):
        RecordLedgerService.ingest(db, sync_session, [_entry("\\Artist\\a.mp3")])
        db.commit()

        assert db.query(SyncRecord).one().file_path == "Artist/a.mp3"

    def test_empty_chunk(self, db, sync_session):
        result = RecordLedgerService.ingest(db, sync_session, [])
        assert result.received == 0

    def test_chunk_size_limit(self, db, sync_session):
        entries = [_entry(f"{i}.mp3") for i in range(3)]
        with pytest.raises(ValidationError, match="exceeds"):
            RecordLedgerService.ingest(db, sync_session, entries, max_chunk_size=2)
        assert db.query(SyncRecord).count() == 0

    def test_invalid_path_rejects_whole_chunk(self, db, sync_session):
        with pytest.raises(ValidationError):
            RecordLedgerService.ingest(db, sync_session, [_entry("ok.mp3"), _entry("../x.mp3")])
        db.rollback()
        assert db.query(SyncRecord).count() == 0

    def test_unknown_song_id_rejected(self, db, sync_session):
        with pytest.raises(ValidationError, match="Unknown song ids"):
            RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3", song_id="nope")])

    def test_known_song_id_kept(self, db, sync_session, song):
        RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3", song_id=song.id)])
        db.commit()

        assert db.query(SyncRecord).one().song_id == song.id

    def test_touches_session(self, db, sync_session):
        sync_session.last_activity_at = T1
        db.commit()

        RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3")])
        db.commit()

        assert sync_session.last_activity_at > T1

    def test_long_reason_truncated(self, db, sync_session):
        RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3", reason="x" * 5000)])
        db.commit()

        reason = db.query(SyncRecord).one().reason
        assert len(reason) == REASON_MAX_LENGTH
        assert reason.endswith("...")

    def test_records_isolated_per_session(self, db, sync_session, other_device):
        other = open_session(db, other_device)
        RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3")])
        result = RecordLedgerService.ingest(db, other, [_entry("a.mp3")])
        db.commit()

        assert result.inserted == 1
        assert db.query(SyncRecord).count() == 2


class TestCrossSourceConflicts:
    """Tests for device/server records on the same path."""

    def test_later_record_wins(self, db, sync_session):
        RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3", SyncRecordAction.DOWNLOADED, SyncRecordSource.SERVER, processed_at=T1)],
        )
        result = RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3", SyncRecordAction.CREATED, SyncRecordSource.DEVICE, processed_at=T2)],
        )
        db.commit()

        record = db.query(SyncRecord).one()
        assert result.conflicts == 1
        assert record.action is SyncRecordAction.CREATED
        assert record.source is SyncRecordSource.DEVICE
        assert "Superseded Server Downloaded" in record.reason

    def test_earlier_record_loses(self, db, sync_session):
        RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3", SyncRecordAction.CREATED, SyncRecordSource.DEVICE, processed_at=T2, reason="uploaded")],
        )
        RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3", SyncRecordAction.DOWNLOADED, SyncRecordSource.SERVER, processed_at=T1)],
        )
        db.commit()

        record = db.query(SyncRecord).one()
        assert record.action is SyncRecordAction.CREATED
        assert record.reason.startswith("uploaded; Kept over Server Downloaded")

    def test_conflict_logged(self, db, sync_session, caplog):
        RecordLedgerService.ingest(
            db, sync_session, [_entry("a.mp3", source=SyncRecordSource.SERVER, processed_at=T1)]
        )
        with caplog.at_level("WARNING", logger="services.record_ledger_service"):
            RecordLedgerService.ingest(
                db, sync_session, [_entry("a.mp3", processed_at=T1 + timedelta(seconds=1))]
            )
        assert "Conflicting records for a.mp3" in caplog.text

    def test_retry_of_superseded_record_ignored(self, db, sync_session, monkeypatch):
        device_chunk = [_entry("a.mp3", SyncRecordAction.CREATED, SyncRecordSource.DEVICE)]
        monkeypatch.setattr("services.record_ledger_service.utc_now", lambda: T1)
        RecordLedgerService.ingest(db, sync_session, device_chunk)
        monkeypatch.undo()
        RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3", SyncRecordAction.SKIPPED, SyncRecordSource.SERVER, processed_at=T2)],
        )
        db.commit()
        reason = db.query(SyncRecord).one().reason

        result = RecordLedgerService.ingest(db, sync_session, device_chunk)
        db.commit()

        record = db.query(SyncRecord).one()
        assert result.ignored == 1
        assert result.conflicts == 0
        assert record.action is SyncRecordAction.SKIPPED
        assert record.source is SyncRecordSource.SERVER
        assert record.reason == reason

    def test_retry_of_rejected_record_ignored(self, db, sync_session):
        RecordLedgerService.ingest(
            db, sync_session, [_entry("a.mp3", SyncRecordAction.CREATED, processed_at=T2)]
        )
        server_chunk = [
            _entry("a.mp3", SyncRecordAction.DOWNLOADED, SyncRecordSource.SERVER, processed_at=T1)
        ]
        RecordLedgerService.ingest(db, sync_session, server_chunk)
        result = RecordLedgerService.ingest(db, sync_session, server_chunk)
        db.commit()

        record = db.query(SyncRecord).one()
        assert result.ignored == 1
        assert record.action is SyncRecordAction.CREATED
        assert record.reason.count("Kept over") == 1

    def test_contested_outcome_stored(self, db, sync_session):
        RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3", SyncRecordAction.DOWNLOADED, SyncRecordSource.SERVER, processed_at=T1)],
        )
        RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3", processed_at=T2)])
        db.commit()

        record = db.query(SyncRecord).one()
        assert record.contested_action is SyncRecordAction.DOWNLOADED
        assert record.contested_source is SyncRecordSource.SERVER

    def test_different_outcome_from_contested_source_resolved(self, db, sync_session):
        RecordLedgerService.ingest(
            db, sync_session, [_entry("a.mp3", SyncRecordAction.CREATED, processed_at=T1)]
        )
        RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3", SyncRecordAction.SKIPPED, SyncRecordSource.SERVER, processed_at=T2)],
        )
        result = RecordLedgerService.ingest(
            db,
            sync_session,
            [_entry("a.mp3", SyncRecordAction.ERROR, processed_at=T2 + timedelta(hours=1))],
        )
        db.commit()

        assert result.conflicts == 1
        assert db.query(SyncRecord).one().action is SyncRecordAction.ERROR


class TestReplaceErrors:
    """Tests for overwriting Error rows with a later success."""

    def test_error_replaced_when_requested(self, db, sync_session):
        RecordLedgerService.ingest(
            db, sync_session, [_entry("a.mp3", SyncRecordAction.ERROR, error_message="boom")]
        )
        result = RecordLedgerService.ingest(
            db, sync_session, [_entry("a.mp3", reason="New song")], replace_errors=True
        )
        db.commit()

        record = db.query(SyncRecord).one()
        assert result.replaced == 1
        assert result.received == 1
        assert record.action is SyncRecordAction.CREATED
        assert record.error_message is None
        assert record.reason == "New song; Retried after error: boom"

    def test_error_kept_by_default(self, db, sync_session):
        RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3", SyncRecordAction.ERROR)])
        result = RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3")])
        db.commit()

        assert result.ignored == 1
        assert db.query(SyncRecord).one().action is SyncRecordAction.ERROR

    def test_success_not_replaced_by_error(self, db, sync_session):
        RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3")])
        result = RecordLedgerService.ingest(
            db, sync_session, [_entry("a.mp3", SyncRecordAction.ERROR)], replace_errors=True
        )
        db.commit()

        assert result.ignored == 1
        assert db.query(SyncRecord).one().action is SyncRecordAction.CREATED


class TestAppend:
    """Tests for RecordLedgerService.append."""

    def test_returns_surviving_record(self, db, sync_session):
        first = RecordLedgerService.append(db, sync_session, _entry("a.mp3"))
        again = RecordLedgerService.append(db, sync_session, _entry("a.mp3", SyncRecordAction.ERROR))

        assert again.id == first.id
        assert again.action is SyncRecordAction.CREATED


class TestCounts:
    """Tests for the per-action aggregates."""

    def test_count_actions(self, db, sync_session):
        RecordLedgerService.ingest(
            db,
            sync_session,
            [
                _entry("a.mp3"),
                _entry("b.mp3"),
                _entry("c.mp3", SyncRecordAction.UPDATED),
                _entry("d.mp3", SyncRecordAction.REMOVED),
                _entry("e.mp3", SyncRecordAction.ERROR),
            ],
        )
        db.commit()

        counts = RecordLedgerService.count_actions(db, sync_session.id)
        assert counts == ActionCounts(
            created_count=2, updated_count=1, removed_count=1, error_count=1
        )
        assert counts.total == 5

    def test_count_actions_empty_session(self, db, sync_session):
        assert RecordLedgerService.count_actions(db, sync_session.id) == ActionCounts()

    def test_count_actions_for_sessions(self, db, sync_session, other_device):
        other = open_session(db, other_device)
        RecordLedgerService.ingest(db, sync_session, [_entry("a.mp3")])
        RecordLedgerService.ingest(db, other, [_entry("a.mp3", SyncRecordAction.SKIPPED)])
        db.commit()

        counts = RecordLedgerService.count_actions_for_sessions(db, [sync_session.id, other.id])
        assert counts[sync_session.id].created_count == 1
        assert counts[other.id].skipped_count == 1

    def test_count_actions_for_no_sessions(self, db):
        assert RecordLedgerService.count_actions_for_sessions(db, []) == {}


class TestListRecords:
    """Tests for RecordLedgerService.list_records."""

    @pytest.fixture
    def populated(self, db, sync_session):
        RecordLedgerService.ingest(
            db,
            sync_session,
            [
                _entry("c.mp3", SyncRecordAction.ERROR),
                _entry("a.mp3"),
                _entry("b.mp3", SyncRecordAction.DOWNLOADED, SyncRecordSource.SERVER),
            ],
        )
        db.commit()
        return sync_session

    def test_ordered_by_path(self, db, populated):
        records = RecordLedgerService.list_records(db, populated.id)
        assert [r.file_path for r in records] == ["a.mp3", "b.mp3", "c.mp3"]

    def test_filter_actions(self, db, populated):
        records = RecordLedgerService.list_records(
            db, populated.id, actions={SyncRecordAction.CREATED, SyncRecordAction.ERROR}
        )
        assert [r.file_path for r in records] == ["a.mp3", "c.mp3"]

    def test_filter_source(self, db, populated):
        records = RecordLedgerService.list_records(db, populated.id, source=SyncRecordSource.SERVER)
        assert [r.file_path for r in records] == ["b.mp3"]
