from typing import List, Optional

import pytest
from unittest.mock import MagicMock

from papermind.ai import AIGateway
from papermind.database import DatabaseManager
from papermind.models import Document, DocumentSource, ProcessingState
from papermind.pipeline import PipelineProcessor
from papermind.rasterizer import PdfRasterizer
from papermind.repositories import (
    DocumentRepository,
    IngestRepository,
    JobRepository,
    PlannerRepository,
    RelationRepository,
    RuleRepository,
    SettingsRepository,
    SignatureRepository,
    VocabularyRepository,
)
from papermind.rules_engine import RulesEngine
from papermind.settings_cache import SettingsCache
from papermind.tasks import JobRunner, TaskRunner
from papermind.vault import DocumentVault, compute_sha256

from tests.helpers import StubProvider, make_pdf, make_png


def pytest_configure(config):
    config.addinivalue_line("markers", "level2: intensive tests that need poppler binaries")


def pytest_addoption(parser):
    parser.addoption(
        "--level2", action="store_true", default=False, help="run level 2 intensive integration tests"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--level2"):
        # --level2 given in cli: do not skip
        return
    skip_level2 = pytest.mark.skip(reason="need --level2 option to run")
    for item in items:
        if "level2" in item.keywords:
            item.add_marker(skip_level2)


# --- Fixtures ---

@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(str(tmp_path / "test.db"))
    manager.init_db()
    yield manager
    manager.close()


@pytest.fixture
def vault(tmp_path):
    return DocumentVault(base_path=tmp_path / "data")


@pytest.fixture
def documents(db):
    return DocumentRepository(db)


@pytest.fixture
def tags(db):
    return VocabularyRepository(db, "tags")


@pytest.fixture
def correspondents(db):
    return VocabularyRepository(db, "correspondents")


@pytest.fixture
def document_types(db):
    return VocabularyRepository(db, "document_types")


@pytest.fixture
def rule_repo(db):
    return RuleRepository(db)


@pytest.fixture
def relation_repo(db):
    return RelationRepository(db)


@pytest.fixture
def signature_repo(db):
    return SignatureRepository(db)


@pytest.fixture
def planner_repo(db):
    return PlannerRepository(db)


@pytest.fixture
def ingest(db):
    return IngestRepository(db)


@pytest.fixture
def job_repo(db):
    return JobRepository(db)


@pytest.fixture
def settings(db):
    return SettingsCache(SettingsRepository(db))


@pytest.fixture
def runner():
    task_runner = TaskRunner(max_workers=2)
    yield task_runner
    task_runner.shutdown(wait_for_tasks=True)


@pytest.fixture
def jobs(runner, job_repo):
    return JobRunner(runner, job_repo)


@pytest.fixture
def provider():
    return StubProvider()


@pytest.fixture
def rasterizer():
    mock = MagicMock(spec=PdfRasterizer)
    mock.render_document.return_value = [make_png((100, 140), (255, 255, 255, 255))]
    mock.render_page.return_value = make_png((100, 140), (255, 255, 255, 255))
    mock.page_count.return_value = 1
    return mock


@pytest.fixture
def gateway(provider, rasterizer, settings):
    return AIGateway(provider, rasterizer, settings, retries=3, backoff=0.0, sleep=lambda s: None)


@pytest.fixture
def make_document(documents, vault):
    """Creates a stored document; processed unless state says otherwise."""

    def _make(
        title: str = "Document",
        content: Optional[str] = None,
        embedding: Optional[List[float]] = None,
        state: ProcessingState = ProcessingState.PROCESSED,
        data: Optional[bytes] = None,
        **fields,
    ) -> Document:
        data = data or make_pdf(text=title + (content or ""))
        stored = vault.store_original(data, "pdf")
        doc = Document(
            title=title,
            content=content,
            embedding=embedding,
            state=state,
            original_file=stored.path,
            checksum=compute_sha256(data),
            file_size=len(data),
            source=DocumentSource.UPLOAD,
            **fields,
        )
        documents.create(doc)
        return documents.get(doc.id)

    return _make


@pytest.fixture
def rules(documents, rule_repo, tags, correspondents, document_types, jobs):
    return RulesEngine(documents, rule_repo, tags, correspondents, document_types, jobs)


@pytest.fixture
def pipeline(documents, tags, correspondents, document_types, vault, gateway, rasterizer, rules, runner, jobs):
    return PipelineProcessor(
        documents, tags, correspondents, document_types, vault, gateway, rasterizer, rules, runner, jobs,
        stale_claim_minutes=30, max_attempts=3,
    )
