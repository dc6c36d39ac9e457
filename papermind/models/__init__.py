"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/__init__.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Package initializer for data models.
------------------------------------------------------------------------------
"""

from .base import new_id, utc_now
from .document import (
    EMBEDDING_DIM,
    Document,
    DocumentPatch,
    DocumentSource,
    DocumentSummary,
    IngestKey,
    ProcessingState,
    VocabularyEntry,
    VocabularyMerge,
)
from .jobs import JobKind, JobState, JobStatus
from .planner import Reminder, ReminderPatch, Todo, TodoPatch
from .relations import (
    DocumentRelation,
    DuplicateGroup,
    DuplicatePair,
    DuplicateScan,
    RelationSuggestion,
    normalize_pair,
)
from .rules import (
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
from .settings import AISettings, EmailSettings
from .signing import PdfRect, PlacementRect, Signature, SigningToken, TokenState, TokenStatus
