"""
Pipeline data objects: question drafts, row errors and batch reports.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from qbank_ingest.models.content import DifficultyLevel, QuestionType, TypedContent

RowRecord = Dict[str, Any]


class QuestionDraft(BaseModel):
    """A validated, fully typed question ready for persistence."""

    title: str
    question_type: QuestionType
    difficulty: DifficultyLevel
    subject_id: str
    course_id: Optional[str] = None
    topic_id: Optional[str] = None
    grade_level: Optional[int] = None
    year: Optional[int] = None
    source_reference: Optional[str] = None
    content: TypedContent
    category_ids: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def content_matches_type(self) -> "QuestionDraft":
        if self.content.type != self.question_type.value:
            raise ValueError(
                f"content of type {self.content.type} does not match question type {self.question_type.value}"
            )
        return self


class RowError(BaseModel):
    """Errors for one source row; ``row`` is 1-based, header excluded."""

    row: int
    errors: List[str]


@dataclass(frozen=True)
class PendingQuestion:
    """A draft paired with the source row it came from."""

    row: int
    draft: QuestionDraft


@dataclass(frozen=True)
class QuestionBankRef:
    id: str
    institution_id: str
    name: str = ""


class BatchReport(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[RowError] = Field(default_factory=list)

    @model_validator(mode="after")
    def counts_add_up(self) -> "BatchReport":
        if self.total != self.successful + self.failed:
            raise ValueError("total must equal successful + failed")
        return self
