"""
Row-to-question conversion.

``convert_row`` is pure: it returns either a ``QuestionDraft`` or a
``RowError`` and never raises for a bad row. ``convert_rows`` folds a whole
decoded file into drafts and errors, keeping source row numbers.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import orjson
from pydantic import ValidationError

from qbank_ingest.core.errors import ContentError
from qbank_ingest.models.content import DifficultyLevel, QuestionType
from qbank_ingest.models.schemas import PendingQuestion, QuestionDraft, RowError, RowRecord
from qbank_ingest.services.builders import build_content, cell_text, describe_validation_error, is_present

REQUIRED_FIELDS = ("title", "questionType", "difficulty", "subjectId")

RowOutcome = Union[QuestionDraft, RowError]


@dataclass
class ConversionResult:
    drafts: List[PendingQuestion] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)


def _enum_value(enum_cls, raw: Any):
    key = str(raw).strip().upper().replace(" ", "_").replace("-", "_")
    try:
        return enum_cls(key)
    except ValueError:
        return None


def _optional_int(row: RowRecord, key: str) -> Optional[int]:
    if not is_present(row, key):
        return None
    value = row[key]
    if isinstance(value, bool):
        raise ContentError(f"'{key}' must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        raise ContentError(f"'{key}' must be an integer") from None


def _category_ids(row: RowRecord) -> List[str]:
    if not is_present(row, "categoryIds"):
        return []
    value = row["categoryIds"]
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = orjson.loads(text)
            except orjson.JSONDecodeError as e:
                raise ContentError(f"Invalid JSON format for categoryIds: {e}") from e
        else:
            value = text.split(",")
    if not isinstance(value, list):
        value = [value]
    # de-duplicated, first occurrence order
    ids = (str(v).strip() for v in value)
    return list(dict.fromkeys(i for i in ids if i))


def _metadata(row: RowRecord) -> Dict[str, Any]:
    if not is_present(row, "metadata"):
        return {}
    value = row["metadata"]
    if isinstance(value, str):
        try:
            value = orjson.loads(value)
        except orjson.JSONDecodeError as e:
            raise ContentError(f"Invalid JSON format for metadata: {e}") from e
    if not isinstance(value, dict):
        raise ContentError("'metadata' must be a JSON object")
    return value


def _build_draft(row: RowRecord) -> QuestionDraft:
    missing = [f for f in REQUIRED_FIELDS if not is_present(row, f)]
    if missing:
        raise ContentError(f"Missing required fields: {', '.join(missing)}")

    question_type = _enum_value(QuestionType, row["questionType"])
    if question_type is None:
        raise ContentError(f"Invalid question type: {row['questionType']}")
    difficulty = _enum_value(DifficultyLevel, row["difficulty"])
    if difficulty is None:
        raise ContentError(f"Invalid difficulty: {row['difficulty']}")

    content = build_content(question_type, row)

    try:
        return QuestionDraft(
            title=cell_text(row, "title"),
            question_type=question_type,
            difficulty=difficulty,
            subject_id=cell_text(row, "subjectId"),
            course_id=cell_text(row, "courseId"),
            topic_id=cell_text(row, "topicId"),
            grade_level=_optional_int(row, "gradeLevel"),
            year=_optional_int(row, "year"),
            source_reference=cell_text(row, "sourceReference"),
            content=content,
            category_ids=_category_ids(row),
            metadata=_metadata(row),
        )
    except ValidationError as e:
        raise ContentError(describe_validation_error("question", e)) from e


def convert_row(row: RowRecord, row_number: int) -> RowOutcome:
    """Convert one row record; ``row_number`` is 1-based and echoed in any error."""
    try:
        return _build_draft(row)
    except ContentError as e:
        return RowError(row=row_number, errors=[str(e)])


def convert_rows(rows: Sequence[RowRecord]) -> ConversionResult:
    result = ConversionResult()
    for row_number, row in enumerate(rows, start=1):
        outcome = convert_row(row, row_number)
        if isinstance(outcome, RowError):
            result.errors.append(outcome)
        else:
            result.drafts.append(PendingQuestion(row=row_number, draft=outcome))
    return result
