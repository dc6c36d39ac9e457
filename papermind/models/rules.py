"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/rules.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Matching rule models. A rule carries exactly one condition
                (field, operator, value) and a set of effects.
------------------------------------------------------------------------------
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import Field, field_validator

from .base import PaperModel, PatchModel, load_json, new_id, parse_ts, utc_now


class MatchField(str, Enum):
    TITLE = "title"
    CONTENT = "content"
    CORRESPONDENT = "correspondent"
    TYPE = "type"


class MatchOperator(str, Enum):
    CONTAINS = "contains"
    EQUALS = "equals"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    REGEX = "regex"
    ANY_WORD = "anyWord"
    ALL_WORDS = "allWords"
    FUZZY = "fuzzy"

    @classmethod
    def parse(cls, value: str) -> "MatchOperator":
        # "exact" is accepted as a legacy alias
        if value == "exact":
            return cls.EQUALS
        return cls(value)


class RuleCondition(PaperModel):
    field: MatchField
    operator: MatchOperator
    value: str

    @field_validator("operator", mode="before")
    @classmethod
    def accept_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            return MatchOperator.parse(v)
        return v

    @field_validator("value")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("match value must not be empty")
        return v


class MatchingRule(PaperModel):
    """An ordered conditional classifier with cumulative effects."""

    id: str = Field(default_factory=new_id)
    name: str
    order: int = 0
    active: bool = True
    condition: RuleCondition
    set_correspondent_id: Optional[str] = None
    set_document_type_id: Optional[str] = None
    add_tag_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_row(cls, row: Any) -> "MatchingRule":
        return cls(
            id=row["id"],
            name=row["name"],
            order=row["sort_order"],
            active=bool(row["active"]),
            condition=RuleCondition(
                field=row["match_field"],
                operator=row["match_operator"],
                value=row["match_value"],
            ),
            set_correspondent_id=row["set_correspondent_id"],
            set_document_type_id=row["set_document_type_id"],
            add_tag_ids=load_json(row["add_tag_ids"], []),
            created_at=parse_ts(row["created_at"]),
        )


class RuleDraft(PaperModel):
    """Input for creating a rule."""

    name: str
    condition: RuleCondition
    order: int = 0
    active: bool = True
    set_correspondent_id: Optional[str] = None
    set_document_type_id: Optional[str] = None
    add_tag_ids: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("rule name must not be empty")
        return v.strip()


class RulePatch(PatchModel):
    name: Optional[str] = None
    order: Optional[int] = None
    active: Optional[bool] = None
    condition: Optional[RuleCondition] = None
    set_correspondent_id: Optional[str] = None
    set_document_type_id: Optional[str] = None
    add_tag_ids: Optional[List[str]] = None


class RuleEvaluation(PaperModel):
    """Outcome of evaluating all active rules against one document."""

    document_id: str
    applied: int = 0
    matched_rules: List[str] = Field(default_factory=list)
    changed: bool = False
    correspondent_id: Optional[str] = None
    document_type_id: Optional[str] = None
    tag_ids: List[str] = Field(default_factory=list)


class RuleTestSample(PaperModel):
    id: str
    title: str


class RuleTestResult(PaperModel):
    count: int = 0
    samples: List[RuleTestSample] = Field(default_factory=list)
