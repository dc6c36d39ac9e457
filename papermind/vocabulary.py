"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/vocabulary.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Vocabulary maintenance: renaming entries and merging
                duplicates (documents and matching rules follow the merge).
------------------------------------------------------------------------------
"""

import sqlite3
from typing import Dict, List

from papermind.errors import ConflictError, NotFoundError, ValidationError
from papermind.logger import get_logger
from papermind.models import VocabularyEntry, VocabularyMerge
from papermind.repositories import RuleRepository, VocabularyRepository

logger = get_logger("vocabulary")


class VocabularyService:
    """
    Keeps tags, correspondents and document types tidy.

    Args:
        tags: Tag repository.
        correspondents: Correspondent repository.
        document_types: Document type repository.
        rules: Matching rules, rewritten when an entry they use is merged.
    """

    def __init__(
        self,
        tags: VocabularyRepository,
        correspondents: VocabularyRepository,
        document_types: VocabularyRepository,
        rules: RuleRepository,
    ) -> None:
        self.repositories: Dict[str, VocabularyRepository] = {
            repo.table: repo for repo in (tags, correspondents, document_types)
        }
        self.rules = rules

    def repository(self, table: str) -> VocabularyRepository:
        repo = self.repositories.get(table)
        if repo is None:
            raise ValidationError(f"Unknown vocabulary: {table}")
        return repo

    def list_entries(self, table: str) -> List[VocabularyEntry]:
        return self.repository(table).list_all()

    def rename(self, table: str, entry_id: str, name: str) -> VocabularyEntry:
        """
        Raises:
            ValidationError: Empty name.
            NotFoundError: Unknown entry.
            ConflictError: Another entry already has the name; merge instead.
        """
        repo = self.repository(table)
        clean = (name or "").strip()
        if not clean:
            raise ValidationError("Name must not be empty")
        if repo.get(entry_id) is None:
            raise NotFoundError(f"Entry not found: {entry_id}")

        existing = repo.get_by_name(clean)
        if existing is not None and existing.id != entry_id:
            raise ConflictError(f"'{clean}' already exists in {table}, merge the entries instead")
        try:
            repo.rename(entry_id, clean)
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"'{clean}' already exists in {table}") from e
        return repo.get(entry_id)

    def merge(self, table: str, source_id: str, target_id: str) -> VocabularyMerge:
        """
        Folds source into target: documents and matching rules that used
        the source now use the target, and the source is deleted.

        Raises:
            ValidationError: Missing target or source equal to target.
            NotFoundError: Source or target does not exist.
        """
        repo = self.repository(table)
        if not target_id:
            raise ValidationError("Merge target is required")
        if source_id == target_id:
            raise ValidationError("Source and target must differ")
        if repo.get(source_id) is None:
            raise NotFoundError(f"Source entry not found: {source_id}")
        target = repo.get(target_id)
        if target is None:
            raise NotFoundError(f"Target entry not found: {target_id}")

        with repo.db.transaction():
            rules = self.rules.replace_vocabulary_reference(table, source_id, target_id)
            documents = repo.merge(source_id, target_id)
        logger.info(f"Merged {table} {source_id} into '{target.name}': {documents} document(s), {rules} rule(s)")
        return VocabularyMerge(target=target, documents=documents, rules=rules)
