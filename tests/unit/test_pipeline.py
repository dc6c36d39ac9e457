"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           tests/unit/test_pipeline.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Unit tests for intake, processing, claims, reprocess,
                failure classification and embedding backfill.
------------------------------------------------------------------------------
"""

from datetime import timedelta

import pytest
from unittest.mock import patch

from papermind.errors import ConflictError, FailureKind, ModelError, NotFoundError, ValidationError
from papermind.models import DocumentSource, JobState, ProcessingState, RuleCondition, RuleDraft
from papermind.models.base import to_iso, utc_now

from tests.helpers import make_pdf, make_png


def test_ingest_creates_unprocessed_document(pipeline, vault):
    data = make_pdf(text="intake")
    doc = pipeline.ingest_bytes(data, "scan.pdf", process=False)

    assert doc.state == ProcessingState.UNPROCESSED
    assert doc.title == "scan"
    assert vault.read(doc.original_file) == data
    assert pipeline.documents.get(doc.id) is not None


def test_ingest_rejects_duplicates_and_bad_input(pipeline):
    data = make_pdf(text="dup")
    pipeline.ingest_bytes(data, "a.pdf", process=False)
    with pytest.raises(ConflictError):
        pipeline.ingest_bytes(data, "b.pdf", process=False)
    with pytest.raises(ValidationError):
        pipeline.ingest_bytes(b"", "empty.pdf", process=False)
    with pytest.raises(ValidationError):
        pipeline.ingest_bytes(b"text", "notes.txt", process=False)


def test_process_persists_everything(pipeline, provider, rasterizer):
    doc = pipeline.ingest_bytes(make_pdf(text="process"), "scan.pdf", process=False)

    result = pipeline.process(doc.id)

    assert result.state == ProcessingState.PROCESSED
    assert result.title == "Invoice 2024-001"
    assert "ACME" in result.content
    assert result.summary == "An invoice from ACME Corp."
    assert result.extracted_data == {"total": "120.00", "currency": "EUR"}
    assert len(result.embedding) == 768
    assert result.correspondent_name == "ACME Corp"
    assert result.document_type_name == "Invoice"
    assert len(result.tag_ids) == 2
    assert result.page_count == 1
    assert result.thumbnail_file == f"thumbnails/{doc.id}.webp"
    assert result.processing_started_at is None
    # Embedding text is title, summary and content
    assert provider.embedded[-1].startswith("Invoice 2024-001\nAn invoice from ACME Corp.\n")


def test_process_image_creates_archive(pipeline, vault):
    doc = pipeline.ingest_bytes(make_png((60, 80), (255, 255, 255, 255)), "photo.png", process=False)

    result = pipeline.process(doc.id)

    assert result.archive_file == f"archive/{doc.id}.pdf"
    assert vault.read(result.archive_file).startswith(b"%PDF")
    assert result.mime_type == "image/png"


def test_process_runs_rules(pipeline, rules, tags):
    urgent = tags.find_or_create("urgent")
    rules.create_rule(RuleDraft(
        name="acme",
        condition=RuleCondition(field="content", operator="contains", value="acme"),
        add_tag_ids=[urgent.id],
    ))
    doc = pipeline.ingest_bytes(make_pdf(text="rules"), "scan.pdf", process=False)

    result = pipeline.process(doc.id)

    assert urgent.id in result.tag_ids


def test_rule_failure_does_not_roll_back(pipeline, rules):
    doc = pipeline.ingest_bytes(make_pdf(text="rule failure"), "scan.pdf", process=False)
    with patch.object(rules, "evaluate", side_effect=RuntimeError("rules broken")):
        result = pipeline.process(doc.id)
    assert result.state == ProcessingState.PROCESSED


def test_permanent_failure_is_recorded(pipeline, provider):
    doc = pipeline.ingest_bytes(make_pdf(text="permanent"), "scan.pdf", process=False)
    provider.fail_with = ModelError("content rejected", FailureKind.PERMANENT)

    with pytest.raises(ModelError):
        pipeline.process(doc.id)

    stored = pipeline.documents.get(doc.id)
    assert stored.state == ProcessingState.UNPROCESSED
    assert stored.error_kind == "permanent"
    assert "content rejected" in stored.processing_error
    assert stored.attempts == 1
    assert stored.processing_started_at is None


def test_transient_failure_is_retried_then_recorded(pipeline, provider):
    doc = pipeline.ingest_bytes(make_pdf(text="transient"), "scan.pdf", process=False)
    provider.fail_with = ModelError("rate limited", FailureKind.TRANSIENT)

    with pytest.raises(ModelError):
        pipeline.process(doc.id)

    # Gateway retried three times before giving up
    assert len(provider.prompts) == 3
    assert pipeline.documents.get(doc.id).error_kind == "transient"
    assert pipeline.documents.list_retry_candidates(3, utc_now()) == [doc.id]


def test_second_trigger_conflicts(pipeline, documents):
    doc = pipeline.ingest_bytes(make_pdf(text="claimed"), "scan.pdf", process=False)
    assert documents.claim(doc.id, utc_now() - timedelta(minutes=30))

    with pytest.raises(ConflictError):
        pipeline.process(doc.id)
    with pytest.raises(ConflictError):
        pipeline.reprocess(doc.id)


def test_stale_claim_is_taken_over(pipeline, documents):
    doc = pipeline.ingest_bytes(make_pdf(text="stale"), "scan.pdf", process=False)
    assert documents.claim(doc.id, utc_now() - timedelta(minutes=30))
    pipeline.stale_claim_minutes = 0

    assert pipeline.process(doc.id).state == ProcessingState.PROCESSED


def test_process_missing_document(pipeline):
    with pytest.raises(NotFoundError):
        pipeline.process("missing")
    with pytest.raises(NotFoundError):
        pipeline.reprocess("missing")


def test_reprocess_is_idempotent(pipeline, runner):
    doc = pipeline.ingest_bytes(make_pdf(text="reprocess"), "scan.pdf", process=False)
    first = pipeline.process(doc.id)

    pipeline.reprocess(doc.id).result(timeout=10)
    once = pipeline.documents.get(doc.id)
    pipeline.reprocess(doc.id).result(timeout=10)
    twice = pipeline.documents.get(doc.id)

    assert once.extracted_data == first.extracted_data == twice.extracted_data
    assert once.tag_ids == twice.tag_ids
    assert twice.state == ProcessingState.PROCESSED


def test_submit_runs_in_background(pipeline, runner):
    doc = pipeline.ingest_bytes(make_pdf(text="background"), "scan.pdf")

    assert runner.wait_idle(timeout=10)
    assert pipeline.documents.get(doc.id).state == ProcessingState.PROCESSED
    assert runner.failures == []


def test_requeue_after_transient_failure(pipeline, provider, runner):
    doc = pipeline.ingest_bytes(make_pdf(text="requeue"), "scan.pdf", process=False)
    provider.fail_with = ModelError("timeout", FailureKind.TRANSIENT)
    with pytest.raises(ModelError):
        pipeline.process(doc.id)

    provider.fail_with = None
    assert pipeline.requeue_unfinished() == 1
    assert runner.wait_idle(timeout=10)
    assert pipeline.documents.get(doc.id).state == ProcessingState.PROCESSED


def test_requeue_respects_max_attempts(pipeline, documents):
    doc = pipeline.ingest_bytes(make_pdf(text="exhausted"), "scan.pdf", process=False)
    for _ in range(3):
        documents.record_failure(doc.id, "timeout", FailureKind.TRANSIENT.value)
    assert pipeline.requeue_unfinished() == 0


def test_requeue_picks_up_interrupted_intake_and_stale_claims(pipeline, documents, runner):
    # Stored but never submitted, as after a crash right after intake
    orphan = pipeline.ingest_bytes(make_pdf(text="orphan"), "orphan.pdf", process=False)
    # Claimed by a run that died hours ago
    crashed = pipeline.ingest_bytes(make_pdf(text="crashed"), "crashed.pdf", process=False)
    assert documents.claim(crashed.id, utc_now())
    documents.db.execute(
        "UPDATE documents SET processing_started_at = ? WHERE id = ?",
        (to_iso(utc_now() - timedelta(hours=5)), crashed.id),
    )

    assert pipeline.requeue_unfinished() == 2
    assert runner.wait_idle(timeout=10)

    assert documents.get(orphan.id).state == ProcessingState.PROCESSED
    assert documents.get(crashed.id).state == ProcessingState.PROCESSED


def test_requeue_skips_active_claims_and_permanent_failures(pipeline, documents):
    active = pipeline.ingest_bytes(make_pdf(text="active"), "active.pdf", process=False)
    assert documents.claim(active.id, utc_now())
    rejected = pipeline.ingest_bytes(make_pdf(text="rejected"), "rejected.pdf", process=False)
    documents.record_failure(rejected.id, "content rejected", FailureKind.PERMANENT.value)

    assert pipeline.requeue_unfinished() == 0


def test_backfill_embeddings(pipeline, make_document, runner):
    missing = make_document(title="Old", content="legacy text")
    job = pipeline.backfill_embeddings()

    assert job.total == 1
    assert runner.wait_idle(timeout=10)
    status = pipeline.jobs.get(job.id)
    assert status.state == JobState.FINISHED
    assert status.affected == 1
    assert len(pipeline.documents.get(missing.id).embedding) == 768


def test_trash_lifecycle(pipeline):
    doc = pipeline.ingest_bytes(make_pdf(text="trash"), "scan.pdf", process=False)

    pipeline.soft_delete(doc.id)
    assert pipeline.documents.get(doc.id) is None
    assert [d.id for d in pipeline.list_trashed()] == [doc.id]

    pipeline.restore(doc.id)
    assert pipeline.documents.get(doc.id) is not None
    with pytest.raises(NotFoundError):
        pipeline.restore(doc.id)


def test_email_title_is_kept(pipeline):
    doc = pipeline.ingest_bytes(
        make_pdf(text="mail"), "invoice.pdf", source=DocumentSource.EMAIL, title="Your March invoice", process=False
    )
    assert pipeline.process(doc.id).title == "Your March invoice"
