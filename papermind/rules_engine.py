"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/rules_engine.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Matching rule engine. Evaluates ordered rules against a
                document and applies their effects cumulatively: the last
                matching rule wins for correspondent/type, tags are unioned.
------------------------------------------------------------------------------
"""

import re
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Pattern, Union

from pydantic import ValidationError as PydanticValidationError
from rapidfuzz.distance import Levenshtein

from papermind.errors import NotFoundError, ValidationError
from papermind.logger import get_logger
from papermind.models import (
    Document,
    DocumentPatch,
    JobKind,
    JobStatus,
    MatchField,
    MatchingRule,
    MatchOperator,
    RuleCondition,
    RuleDraft,
    RuleEvaluation,
    RulePatch,
    RuleTestResult,
    RuleTestSample,
)
from papermind.repositories import DocumentRepository, RuleRepository, VocabularyRepository
from papermind.tasks import JobRunner

logger = get_logger("rules")

FUZZY_THRESHOLD = 0.82
TEST_SAMPLE_SIZE = 5

Matcher = Callable[[str, str], bool]


# --- Pure matchers: (field value, pattern) -> bool ---

def _terms(pattern: str) -> List[str]:
    """Comma-separated list of non-empty, lowercased terms."""
    return [t.strip().lower() for t in pattern.split(",") if t.strip()]


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Optional[Pattern]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        logger.warning(f"Invalid rule regex treated as non-match: {pattern!r}")
        return None


def match_contains(value: str, pattern: str) -> bool:
    return pattern.lower() in value.lower()


def match_equals(value: str, pattern: str) -> bool:
    return value.lower() == pattern.lower()


def match_starts_with(value: str, pattern: str) -> bool:
    return value.lower().startswith(pattern.lower())


def match_ends_with(value: str, pattern: str) -> bool:
    return value.lower().endswith(pattern.lower())


def match_regex(value: str, pattern: str) -> bool:
    compiled = _compile(pattern)
    return bool(compiled and compiled.search(value))


def match_any_word(value: str, pattern: str) -> bool:
    haystack = value.lower()
    terms = _terms(pattern)
    return bool(terms) and any(t in haystack for t in terms)


def match_all_words(value: str, pattern: str) -> bool:
    haystack = value.lower()
    terms = _terms(pattern)
    return bool(terms) and all(t in haystack for t in terms)


def match_fuzzy(value: str, pattern: str) -> bool:
    """
    Any word of the value is at least FUZZY_THRESHOLD similar to the
    pattern, measured as 1 - edit distance / length of the longer string.
    """
    needle = pattern.lower().strip()
    if not needle:
        return False
    return any(
        Levenshtein.normalized_similarity(word, needle) >= FUZZY_THRESHOLD
        for word in value.lower().split()
    )


MATCHERS: Dict[MatchOperator, Matcher] = {
    MatchOperator.CONTAINS: match_contains,
    MatchOperator.EQUALS: match_equals,
    MatchOperator.STARTS_WITH: match_starts_with,
    MatchOperator.ENDS_WITH: match_ends_with,
    MatchOperator.REGEX: match_regex,
    MatchOperator.ANY_WORD: match_any_word,
    MatchOperator.ALL_WORDS: match_all_words,
    MatchOperator.FUZZY: match_fuzzy,
}


def matches_condition(field_value: str, operator: MatchOperator, pattern: str) -> bool:
    """Pure evaluation of a single condition."""
    return MATCHERS[operator](field_value, pattern)


def field_value(doc: Document, match_field: MatchField) -> str:
    if match_field == MatchField.TITLE:
        return doc.title or ""
    if match_field == MatchField.CONTENT:
        return doc.content or ""
    if match_field == MatchField.CORRESPONDENT:
        return doc.correspondent_name or ""
    return doc.document_type_name or ""


class RulesEngine:
    """
    Evaluates matching rules against documents and persists the
    accumulated effects in one update per document.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        rules: RuleRepository,
        tags: VocabularyRepository,
        correspondents: VocabularyRepository,
        document_types: VocabularyRepository,
        jobs: JobRunner,
    ) -> None:
        self.documents = documents
        self.rules = rules
        self.tags = tags
        self.correspondents = correspondents
        self.document_types = document_types
        self.jobs = jobs

    # --- Rule management ---

    def create_rule(self, draft: Union[RuleDraft, Dict[str, Any]]) -> MatchingRule:
        """
        Raises:
            ValidationError: Missing name, unknown field/operator or blank value.
            NotFoundError: A referenced correspondent, type or tag is missing.
        """
        if not isinstance(draft, RuleDraft):
            try:
                draft = RuleDraft.model_validate(draft)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid rule: {e}") from e
        self._check_references(draft.set_correspondent_id, draft.set_document_type_id, draft.add_tag_ids)
        rule = MatchingRule(**draft.model_dump())
        return self.rules.create(rule)

    def update_rule(self, rule_id: str, patch: RulePatch) -> MatchingRule:
        if self.rules.get(rule_id) is None:
            raise NotFoundError(f"Rule not found: {rule_id}")
        fields = patch.present()
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Rule name must not be empty")
        self._check_references(
            fields.get("set_correspondent_id"),
            fields.get("set_document_type_id"),
            fields.get("add_tag_ids") or [],
        )
        self.rules.update(rule_id, patch)
        return self.rules.get(rule_id)

    def delete_rule(self, rule_id: str) -> None:
        if not self.rules.delete(rule_id):
            raise NotFoundError(f"Rule not found: {rule_id}")

    def get_rule(self, rule_id: str) -> MatchingRule:
        rule = self.rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Rule not found: {rule_id}")
        return rule

    def list_rules(self) -> List[MatchingRule]:
        return self.rules.list_all()

    def _check_references(self, correspondent_id: Optional[str], type_id: Optional[str], tag_ids: List[str]) -> None:
        if correspondent_id and self.correspondents.get(correspondent_id) is None:
            raise NotFoundError(f"Correspondent not found: {correspondent_id}")
        if type_id and self.document_types.get(type_id) is None:
            raise NotFoundError(f"Document type not found: {type_id}")
        for tag_id in tag_ids:
            if self.tags.get(tag_id) is None:
                raise NotFoundError(f"Tag not found: {tag_id}")

    # --- Evaluation ---

    def evaluate(self, document_id: str, rules: Optional[List[MatchingRule]] = None) -> RuleEvaluation:
        """
        Runs all active rules (in order) against one document and persists
        the accumulated effects.

        Conditions are evaluated against the document as loaded; effects of
        earlier rules do not feed into later conditions.
        """
        doc = self.documents.get(document_id)
        if doc is None:
            raise NotFoundError(f"Document not found: {document_id}")
        if rules is None:
            rules = self.rules.list_active()

        correspondent_id = doc.correspondent_id
        document_type_id = doc.document_type_id
        tag_ids = set(doc.tag_ids)
        matched: List[str] = []

        for rule in rules:
            value = field_value(doc, rule.condition.field)
            if not value or not matches_condition(value, rule.condition.operator, rule.condition.value):
                continue
            matched.append(rule.name)
            # Last match wins for correspondent/type
            if rule.set_correspondent_id is not None:
                correspondent_id = rule.set_correspondent_id
            if rule.set_document_type_id is not None:
                document_type_id = rule.set_document_type_id
            tag_ids.update(rule.add_tag_ids)

        result = RuleEvaluation(
            document_id=document_id,
            applied=len(matched),
            matched_rules=matched,
            correspondent_id=correspondent_id,
            document_type_id=document_type_id,
            tag_ids=sorted(tag_ids),
        )
        if not matched:
            return result

        changes = {}
        if correspondent_id != doc.correspondent_id:
            changes["correspondent_id"] = correspondent_id
        if document_type_id != doc.document_type_id:
            changes["document_type_id"] = document_type_id
        patch = DocumentPatch(**changes)
        new_tags = tag_ids - set(doc.tag_ids)

        if patch.is_empty() and not new_tags:
            logger.debug(f"Rules matched {document_id} but changed nothing")
            return result

        with self.documents.db.transaction():
            if not self.documents.update(document_id, patch):
                return result
            self.documents.add_tags(document_id, sorted(new_tags))

        result.changed = True
        logger.info(f"Applied {len(matched)} rule(s) to {document_id}: {', '.join(matched)}")
        return result

    def apply_all(self) -> JobStatus:
        """
        Evaluates every processed document in the background.

        Returns:
            The job record; total is the number of documents to visit.
        """
        document_ids = self.documents.list_processed_ids()
        return self.jobs.start(
            JobKind.APPLY_ALL_RULES,
            len(document_ids),
            lambda job: self._apply_all(job, document_ids),
        )

    def _apply_all(self, job: JobStatus, document_ids: List[str]) -> None:
        rules = self.rules.list_active()
        repo = self.jobs.jobs
        for document_id in document_ids:
            try:
                result = self.evaluate(document_id, rules)
            except Exception as e:
                logger.warning(f"Rule evaluation failed for {document_id}: {e}")
                repo.progress(job.id, processed=1, failed=1)
                continue
            repo.progress(job.id, processed=1, affected=1 if result.changed else 0)

    def job(self, job_id: str) -> JobStatus:
        status = self.jobs.get(job_id)
        if status is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return status

    # --- Preview ---

    def test(self, match_field: str, operator: str, value: str) -> RuleTestResult:
        """
        Dry-runs a condition against all processed documents.

        Raises:
            ValidationError: For missing or unknown field/operator/value.
        """
        if not match_field or not operator or not value:
            raise ValidationError("field, operator and value are required")
        try:
            condition = RuleCondition(field=match_field, operator=operator, value=value)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        matches = [
            doc for doc in self.documents.list_processed()
            if matches_condition(field_value(doc, condition.field), condition.operator, condition.value)
        ]
        return RuleTestResult(
            count=len(matches),
            samples=[RuleTestSample(id=d.id, title=d.title) for d in matches[:TEST_SAMPLE_SIZE]],
        )
