"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/application.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Composition root. Builds the storage layer, AI gateway,
                services and watchers from an AppConfig and owns their
                lifecycle.
------------------------------------------------------------------------------
"""

from typing import Optional

from papermind.ai import AIGateway, AIProvider, create_provider
from papermind.compositor import SignatureCompositor
from papermind.config import AppConfig
from papermind.database import DatabaseManager
from papermind.logger import get_logger
from papermind.pipeline import PipelineProcessor
from papermind.planner import PlannerService
from papermind.rasterizer import PdfRasterizer
from papermind.relations import RelationSuggester
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
from papermind.signing import SigningService
from papermind.tasks import JobRunner, TaskRunner
from papermind.vault import DocumentVault
from papermind.vocabulary import VocabularyService
from papermind.watchers import ConsumeWatcher, MailWatcher

logger = get_logger("core")


class PaperMindApp:
    """
    Holds one fully wired instance of every component.

    Args:
        config: Application configuration.
        provider: Extraction backend; created from config when omitted.
        embed_provider: Embedding backend; created from config when omitted.
    """

    def __init__(
        self,
        config: AppConfig,
        provider: Optional[AIProvider] = None,
        embed_provider: Optional[AIProvider] = None,
    ) -> None:
        self.config = config

        # Storage
        self.db = DatabaseManager(db_path=config.get_db_path())
        self.db.init_db()
        self.vault = DocumentVault(base_path=config.get_data_dir())

        self.documents = DocumentRepository(self.db)
        self.tags = VocabularyRepository(self.db, "tags")
        self.correspondents = VocabularyRepository(self.db, "correspondents")
        self.document_types = VocabularyRepository(self.db, "document_types")
        self.rule_repo = RuleRepository(self.db)
        self.relation_repo = RelationRepository(self.db)
        self.signature_repo = SignatureRepository(self.db)
        self.planner_repo = PlannerRepository(self.db)
        self.ingest = IngestRepository(self.db)
        self.job_repo = JobRepository(self.db)
        self.settings = SettingsCache(SettingsRepository(self.db))

        # Workers
        self.runner = TaskRunner(max_workers=config.get_max_workers())
        self.jobs = JobRunner(self.runner, self.job_repo)

        # AI
        self.rasterizer = PdfRasterizer(timeout=config.get_render_timeout())
        if provider is None:
            provider = create_provider(config, config.get_ai_provider())
        if embed_provider is None and config.get_embed_provider() != config.get_ai_provider():
            embed_provider = create_provider(config, config.get_embed_provider())
        self.gateway = AIGateway(
            provider,
            self.rasterizer,
            self.settings,
            embed_provider=embed_provider,
            retries=config.get_ai_retries(),
        )

        # Services
        self.rules = RulesEngine(
            self.documents, self.rule_repo, self.tags, self.correspondents, self.document_types, self.jobs
        )
        self.pipeline = PipelineProcessor(
            self.documents,
            self.tags,
            self.correspondents,
            self.document_types,
            self.vault,
            self.gateway,
            self.rasterizer,
            self.rules,
            self.runner,
            self.jobs,
            stale_claim_minutes=config.get_stale_claim_minutes(),
            max_attempts=config.get_max_attempts(),
        )
        self.relations = RelationSuggester(self.documents, self.relation_repo)
        self.signing = SigningService(
            self.documents,
            self.signature_repo,
            self.vault,
            SignatureCompositor(),
            stale_claim_minutes=config.get_stale_claim_minutes(),
        )
        self.planner = PlannerService(self.planner_repo, self.documents)
        self.vocabulary = VocabularyService(self.tags, self.correspondents, self.document_types, self.rule_repo)

        # Watchers
        self.consume_watcher = ConsumeWatcher(
            self.vault.consume_dir,
            self.pipeline,
            self.ingest,
            interval_seconds=config.get_consume_interval(),
            max_attempts=config.get_max_attempts(),
        )
        self.mail_watcher = MailWatcher(self.settings, self.pipeline, self.ingest)

    def start_watchers(self) -> None:
        self.consume_watcher.start()
        self.mail_watcher.start()

    def shutdown(self) -> None:
        """Stops watchers, drains the worker pool and closes the database."""
        logger.info("Shutting down")
        self.consume_watcher.stop()
        self.mail_watcher.stop()
        self.runner.shutdown(wait_for_tasks=True)
        self.db.close()
