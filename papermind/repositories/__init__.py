"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/repositories/__init__.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Storage adapter: typed repositories over the SQLite store.
                The only layer that touches persistent state directly.
------------------------------------------------------------------------------
"""

from .base import BaseRepository
from .document_repo import DocumentRepository
from .ingest_repo import IngestRepository
from .job_repo import JobRepository
from .planner_repo import PlannerRepository
from .relation_repo import RelationRepository
from .rule_repo import RuleRepository
from .settings_repo import SettingsRepository
from .signature_repo import SignatureRepository
from .vocabulary_repo import VocabularyRepository
