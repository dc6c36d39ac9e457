"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/pipeline.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Processing pipeline. Takes an unprocessed document through
                derived files, AI extraction, embedding, one atomic persist
                and best-effort rule evaluation. Runs are serialized per
                document by a claim on the document row.
------------------------------------------------------------------------------
"""

import threading
from concurrent.futures import Future
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from papermind.ai.gateway import AIGateway, ExtractionResult, build_embedding_text
from papermind.errors import ConflictError, NotFoundError, ValidationError, failure_kind
from papermind.importer import ImageImporter, extension_for, is_image, mime_for
from papermind.logger import get_logger
from papermind.models import (
    Document,
    DocumentPatch,
    DocumentSource,
    IngestKey,
    JobKind,
    JobStatus,
    ProcessingState,
    utc_now,
)
from papermind.rasterizer import PdfRasterizer
from papermind.repositories import DocumentRepository, VocabularyRepository
from papermind.rules_engine import RulesEngine
from papermind.tasks import JobRunner, TaskRunner
from papermind.vault import DocumentVault

logger = get_logger("pipeline")


class PipelineProcessor:
    """
    Orchestrates intake and processing of documents.

    Args:
        stale_claim_minutes: Age after which a claim counts as abandoned.
        max_attempts: Upper bound for automatic retries of transient failures.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        tags: VocabularyRepository,
        correspondents: VocabularyRepository,
        document_types: VocabularyRepository,
        vault: DocumentVault,
        gateway: AIGateway,
        rasterizer: PdfRasterizer,
        rules: RulesEngine,
        runner: TaskRunner,
        jobs: JobRunner,
        stale_claim_minutes: int = 30,
        max_attempts: int = 3,
    ) -> None:
        self.documents = documents
        self.tags = tags
        self.correspondents = correspondents
        self.document_types = document_types
        self.vault = vault
        self.gateway = gateway
        self.rasterizer = rasterizer
        self.rules = rules
        self.runner = runner
        self.jobs = jobs
        self.stale_claim_minutes = stale_claim_minutes
        self.max_attempts = max_attempts
        self._queued: Set[str] = set()
        self._queued_lock = threading.Lock()

    # --- Intake ---

    def ingest_bytes(
        self,
        data: bytes,
        filename: str,
        source: DocumentSource = DocumentSource.UPLOAD,
        title: Optional[str] = None,
        ingest_key: Optional[str] = None,
        process: bool = True,
    ) -> Document:
        """
        Stores an artifact durably and creates its unprocessed document.

        The document row only becomes visible after the original is on disk.
        With process=True the pipeline run is scheduled on the worker pool.

        Raises:
            ValidationError: For empty data or an unsupported file type.
            ConflictError: If identical content (or the ingest key) is known.
        """
        if not data:
            raise ValidationError(f"Empty file: {filename}")
        mime_type = mime_for(filename)
        if mime_type is None:
            raise ValidationError(f"Unsupported file type: {filename}")

        stored = self.vault.store_original(data, extension_for(mime_type))
        existing = self.documents.get_by_checksum(stored.checksum)
        if existing is not None:
            raise ConflictError(f"Duplicate of document {existing.id}")

        doc = Document(
            title=(title or Path(filename).stem).strip(),
            original_file=stored.path,
            checksum=stored.checksum,
            mime_type=mime_type,
            file_size=stored.size,
            source=source,
        )
        key = IngestKey(key=ingest_key, source=source, document_id=doc.id) if ingest_key else None
        self.documents.create(doc, ingest_key=key)

        if process:
            self.submit(doc.id)
        return doc

    # --- Scheduling ---

    def submit(self, document_id: str) -> Optional[Future]:
        """
        Schedules a pipeline run. A document already waiting in the queue
        is not queued twice.
        """
        with self._queued_lock:
            if document_id in self._queued:
                logger.debug(f"Document {document_id} already queued")
                return None
            self._queued.add(document_id)
        try:
            return self.runner.submit(f"process:{document_id}", self._run_detached, document_id)
        except RuntimeError:
            # Pool already shut down
            self._dequeue(document_id)
            raise

    def _dequeue(self, document_id: str) -> None:
        with self._queued_lock:
            self._queued.discard(document_id)

    def _run_detached(self, document_id: str) -> None:
        self._dequeue(document_id)
        try:
            self.process(document_id)
        except ConflictError as e:
            logger.info(f"Skipped run for {document_id}: {e}")
        except NotFoundError:
            logger.info(f"Document {document_id} vanished before processing")

    def reprocess(self, document_id: str) -> Future:
        """
        Resets derived fields and schedules a fresh run. Returns immediately.

        Raises:
            NotFoundError: Missing or trashed document.
            ConflictError: A run is in flight.
        """
        self._claim(document_id)
        try:
            self.documents.reset_derived(document_id)
            future = self.runner.submit(f"reprocess:{document_id}", self._run_claimed, document_id, None)
        except BaseException:
            self.documents.release(document_id)
            raise
        logger.info(f"Reprocess of {document_id} scheduled")
        return future

    def requeue_unfinished(self, max_attempts: Optional[int] = None) -> int:
        """
        Re-submits unprocessed documents that still need a run, including
        those whose claim was left behind by a crashed run.
        """
        limit = max_attempts if max_attempts is not None else self.max_attempts
        count = 0
        for document_id in self.documents.list_retry_candidates(limit, self._stale_before()):
            if self.submit(document_id) is not None:
                count += 1
        if count:
            logger.info(f"Re-queued {count} unfinished document(s)")
        return count

    # --- Processing ---

    def process(self, document_id: str, file_bytes: Optional[bytes] = None) -> Document:
        """
        Runs the pipeline synchronously.

        Raises:
            NotFoundError: Missing or trashed document.
            ConflictError: Another run holds the claim.
            ModelError, TransientInfraError, PermanentProcessingError:
                The failure is also recorded on the document.
        """
        self._claim(document_id)
        return self._run_claimed(document_id, file_bytes)

    def _stale_before(self) -> datetime:
        return utc_now() - timedelta(minutes=self.stale_claim_minutes)

    def _claim(self, document_id: str) -> None:
        if self.documents.claim(document_id, self._stale_before()):
            return
        if not self.documents.exists(document_id):
            raise NotFoundError(f"Document not found: {document_id}")
        raise ConflictError(f"Document {document_id} is already being processed")

    def _run_claimed(self, document_id: str, file_bytes: Optional[bytes]) -> Document:
        try:
            doc = self.documents.require(document_id)
            try:
                self._run_steps(doc, file_bytes)
            except Exception as e:
                kind = failure_kind(e)
                self.documents.record_failure(document_id, str(e), kind.value)
                logger.error(f"Processing {document_id} failed ({kind.value}): {e}")
                raise
        finally:
            self.documents.release(document_id)

        # Best-effort: a rule failure does not undo the persisted result
        try:
            self.rules.evaluate(document_id)
        except Exception as e:
            logger.warning(f"Rule evaluation failed for {document_id}: {e}")

        return self.documents.get(document_id) or doc

    def _run_steps(self, doc: Document, file_bytes: Optional[bytes]) -> None:
        data = file_bytes if file_bytes is not None else self.vault.read(doc.original_file)
        derived = self._derive_files(doc, data)

        extraction = self.gateway.extract(data, doc.mime_type, self._vocabulary())
        title = self._choose_title(doc, extraction)
        embedding = self.gateway.embed(build_embedding_text(title, extraction.summary, extraction.text))

        self._persist(doc, extraction, title, embedding, derived)
        logger.info(f"Processed document {doc.id}: {title!r}")

    def _derive_files(self, doc: Document, data: bytes) -> Dict[str, Any]:
        """Archive PDF for images, first page thumbnail and page count."""
        fields: Dict[str, Any] = {}
        archive_file = doc.archive_file
        if is_image(doc.mime_type):
            if archive_file is None:
                archive_file = self.vault.store_archive(doc.id, ImageImporter.convert_to_pdf(data, doc.mime_type))
                fields["archive_file"] = archive_file
            first_page = ImageImporter.to_png(data)
        else:
            first_page = self.rasterizer.render_page(self.vault.resolve(doc.current_file), 1)

        pdf_path = self.vault.resolve(archive_file or doc.original_file)
        fields["page_count"] = self.rasterizer.page_count(pdf_path)
        fields["thumbnail_file"] = self.vault.store_thumbnail(doc.id, ImageImporter.thumbnail(first_page))
        return fields

    def _vocabulary(self) -> Dict[str, List[str]]:
        return {
            "tags": [e.name for e in self.tags.list_all()],
            "correspondents": [e.name for e in self.correspondents.list_all()],
            "document types": [e.name for e in self.document_types.list_all()],
        }

    @staticmethod
    def _choose_title(doc: Document, extraction: ExtractionResult) -> str:
        # Email subjects are kept; filenames are replaced by the model title
        if doc.source == DocumentSource.EMAIL and doc.title:
            return doc.title
        return extraction.title or doc.title

    def _persist(
        self,
        doc: Document,
        extraction: ExtractionResult,
        title: str,
        embedding: List[float],
        derived: Dict[str, Any],
    ) -> None:
        with self.documents.db.transaction():
            current = self.documents.require(doc.id)
            correspondent_id = current.correspondent_id
            if extraction.correspondent:
                correspondent_id = self.correspondents.find_or_create(extraction.correspondent).id
            document_type_id = current.document_type_id
            if extraction.document_type:
                document_type_id = self.document_types.find_or_create(extraction.document_type).id
            tag_ids = set(current.tag_ids)
            tag_ids.update(self.tags.find_or_create(name).id for name in extraction.tags)

            patch = DocumentPatch(
                title=title,
                content=extraction.text,
                summary=extraction.summary,
                extracted_data=extraction.structured_data,
                embedding=embedding,
                state=ProcessingState.PROCESSED,
                correspondent_id=correspondent_id,
                document_type_id=document_type_id,
                tag_ids=sorted(tag_ids),
                document_date=extraction.document_date,
                language=extraction.language,
                processing_error=None,
                error_kind=None,
                **derived,
            )
            self.documents.update(doc.id, patch)

    # --- Embedding backfill ---

    def backfill_embeddings(self) -> JobStatus:
        """Embeds processed documents that lack a vector, in the background."""
        document_ids = self.documents.list_missing_embedding()
        return self.jobs.start(
            JobKind.EMBEDDING_BACKFILL,
            len(document_ids),
            lambda job: self._backfill(job, document_ids),
        )

    def _backfill(self, job: JobStatus, document_ids: List[str]) -> None:
        repo = self.jobs.jobs
        for document_id in document_ids:
            try:
                doc = self.documents.require(document_id)
                vector = self.gateway.embed(build_embedding_text(doc.title, doc.summary, doc.content))
                changed = self.documents.update(document_id, DocumentPatch(embedding=vector))
            except Exception as e:
                logger.warning(f"Embedding backfill failed for {document_id}: {e}")
                repo.progress(job.id, processed=1, failed=1)
                continue
            repo.progress(job.id, processed=1, affected=1 if changed else 0)

    # --- Lifecycle ---

    def soft_delete(self, document_id: str) -> None:
        if not self.documents.soft_delete(document_id):
            raise NotFoundError(f"Document not found: {document_id}")
        logger.info(f"Moved document {document_id} to trash")

    def restore(self, document_id: str) -> None:
        if not self.documents.restore(document_id):
            raise NotFoundError(f"No trashed document: {document_id}")
        logger.info(f"Restored document {document_id}")

    def list_trashed(self) -> List[Document]:
        return self.documents.list_trashed()
