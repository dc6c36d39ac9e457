"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           tests/unit/test_consume_watcher.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Unit tests for the consume folder watcher: dedup by content
                hash, claim/unclaim of files and crash recovery.
------------------------------------------------------------------------------
"""

import time

import pytest
from unittest.mock import patch

from papermind.models import DocumentSource, ProcessingState
from papermind.watchers.consume import CLAIM_SUFFIX, ConsumeWatcher, ingest_key_for

from tests.helpers import make_pdf


@pytest.fixture
def watcher(tmp_path, pipeline, ingest):
    return ConsumeWatcher(tmp_path / "consume", pipeline, ingest, interval_seconds=0.01)


def test_ingests_and_removes_file(watcher, runner, documents):
    data = make_pdf(text="consume")
    (watcher.consume_dir / "scan.pdf").write_bytes(data)

    assert watcher.scan_once() == 1
    assert runner.wait_idle(timeout=10)

    assert list(watcher.consume_dir.iterdir()) == []
    doc = documents.get_by_checksum(ingest_key_for(data).split(":", 1)[1])
    assert doc.source == DocumentSource.CONSUME
    assert doc.state == ProcessingState.PROCESSED


def test_same_file_twice_creates_one_document(watcher, runner, documents, ingest):
    data = make_pdf(text="twice")
    (watcher.consume_dir / "a.pdf").write_bytes(data)
    watcher.scan_once()
    (watcher.consume_dir / "b.pdf").write_bytes(data)

    assert watcher.scan_once() == 0
    assert runner.wait_idle(timeout=10)

    assert len(documents.list_processed_ids()) == 1
    assert ingest.seen(ingest_key_for(data))
    assert list(watcher.consume_dir.iterdir()) == []


def test_duplicate_content_under_new_key_is_dropped(watcher, pipeline, documents, ingest):
    # Known by checksum from an upload, not by ingest key
    data = make_pdf(text="uploaded")
    pipeline.ingest_bytes(data, "upload.pdf", process=False)
    (watcher.consume_dir / "again.pdf").write_bytes(data)

    assert watcher.scan_once() == 0
    assert ingest.seen(ingest_key_for(data))
    assert list(watcher.consume_dir.iterdir()) == []


def test_unsupported_and_hidden_files_are_ignored(watcher):
    (watcher.consume_dir / "notes.txt").write_text("hello")
    (watcher.consume_dir / ".partial.pdf").write_bytes(make_pdf())
    (watcher.consume_dir / "subdir").mkdir()

    assert watcher.candidates() == []
    assert watcher.scan_once() == 0
    assert (watcher.consume_dir / "notes.txt").exists()


def test_failed_ingest_keeps_file_for_retry(watcher, pipeline):
    (watcher.consume_dir / "scan.pdf").write_bytes(make_pdf(text="retry"))

    with patch.object(pipeline, "ingest_bytes", side_effect=OSError("disk full")):
        assert watcher.scan_once() == 0

    assert [p.name for p in watcher.consume_dir.iterdir()] == ["scan.pdf"]
    assert watcher.scan_once() == 1


def test_recover_claimed_files(watcher):
    (watcher.consume_dir / f"scan.pdf{CLAIM_SUFFIX}").write_bytes(make_pdf(text="crash"))

    assert watcher.recover_claimed() == 1
    assert [p.name for p in watcher.consume_dir.iterdir()] == ["scan.pdf"]


def test_scan_requeues_unfinished_documents(watcher, pipeline):
    with patch.object(pipeline, "requeue_unfinished", return_value=0) as requeue:
        watcher.scan_once()
    requeue.assert_called_once_with(3)


def test_scan_resumes_document_stored_before_a_crash(watcher, pipeline, runner, documents):
    # Source file already gone, document never handed to the pool
    data = make_pdf(text="interrupted")
    doc = pipeline.ingest_bytes(data, "scan.pdf", DocumentSource.CONSUME, ingest_key=ingest_key_for(data), process=False)

    assert watcher.scan_once() == 0
    assert runner.wait_idle(timeout=10)

    assert documents.get(doc.id).state == ProcessingState.PROCESSED


def test_start_and_stop(watcher, runner):
    (watcher.consume_dir / "scan.pdf").write_bytes(make_pdf(text="threaded"))

    watcher.start()
    try:
        assert watcher.running
        for _ in range(200):
            if not any(watcher.consume_dir.iterdir()):
                break
            time.sleep(0.05)
    finally:
        watcher.stop()

    assert not watcher.running
    assert list(watcher.consume_dir.iterdir()) == []
    assert runner.wait_idle(timeout=10)
