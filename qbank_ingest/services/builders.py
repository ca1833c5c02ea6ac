"""
Content builders: one per question type.

A builder takes a decoded row record and returns a fully typed content model,
or raises ``ContentError`` with a message suitable for the upload report.
Builders are atomic; they never hand back partially populated content.

Structured cells (``options``, ``blanks``, ``pairs``, ``items``, ``zones``,
``rubric``, ``keywords``) hold JSON text in CSV and spreadsheet uploads and
real arrays in JSON uploads. Both are validated through the same pydantic
sub-schemas.
"""
import math
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from qbank_ingest.core.errors import ContentError
from qbank_ingest.models.content import (
    BlankIn, ChoiceOption, DragAndDropContent, DragItemIn, DropZoneIn, EssayContent,
    FillInTheBlanksContent, MatchingContent, MultipleChoiceContent, MultipleResponseContent,
    NonBlankStr, NumericContent, NumericRange, OptionIn, PairIn, QuestionType, Rubric,
    RubricCriterion, RubricCriterionIn, ShortAnswerContent, TrueFalseContent, TypedContent,
)
from qbank_ingest.models.schemas import RowRecord

LABELS: Dict[QuestionType, str] = {
    QuestionType.MULTIPLE_CHOICE: "multiple choice",
    QuestionType.TRUE_FALSE: "true/false",
    QuestionType.MULTIPLE_RESPONSE: "multiple response",
    QuestionType.FILL_IN_THE_BLANKS: "fill in the blanks",
    QuestionType.MATCHING: "matching",
    QuestionType.DRAG_AND_DROP: "drag and drop",
    QuestionType.DRAG_THE_WORDS: "drag the words",
    QuestionType.NUMERIC: "numeric",
    QuestionType.SEQUENCE: "sequence",
    QuestionType.FLASH_CARDS: "flash cards",
    QuestionType.READING: "reading",
    QuestionType.VIDEO: "video",
    QuestionType.SHORT_ANSWER: "short answer",
    QuestionType.ESSAY: "essay",
}

_OPTIONS = TypeAdapter(List[OptionIn])
_BLANKS = TypeAdapter(List[BlankIn])
_PAIRS = TypeAdapter(List[PairIn])
_ITEMS = TypeAdapter(List[DragItemIn])
_ZONES = TypeAdapter(List[DropZoneIn])
_RUBRIC = TypeAdapter(List[RubricCriterionIn])
_KEYWORDS = TypeAdapter(List[NonBlankStr])

_TRUTHY = {"true", "yes", "y", "1"}


# ---------- cell helpers ----------

def is_present(row: RowRecord, key: str) -> bool:
    value = row.get(key)
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def cell_text(row: RowRecord, key: str) -> Optional[str]:
    if not is_present(row, key):
        return None
    return str(row[key]).strip()


def cell_flag(row: RowRecord, key: str) -> bool:
    value = row.get(key)
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def require(row: RowRecord, key: str, question_type: QuestionType) -> Any:
    if not is_present(row, key):
        raise ContentError(f"Missing required field '{key}' for {LABELS[question_type]} question")
    return row[key]


def _format_loc(loc) -> str:
    out = ""
    for part in loc:
        out += f"[{part}]" if isinstance(part, int) else f".{part}"
    return out.lstrip(".")


def describe_validation_error(field: str, exc: ValidationError) -> str:
    """Flatten a pydantic error into ``Invalid <field>: <path>: <reason>`` form."""
    errors = exc.errors()
    for err in errors:
        if err["type"] == "json_invalid":
            reason = (err.get("ctx") or {}).get("error", err["msg"])
            return f"Invalid JSON format for {field}: {reason}"
    parts = []
    for err in errors:
        loc = _format_loc(err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return f"Invalid {field}: " + "; ".join(parts)


def parse_structured(value: Any, adapter: TypeAdapter, field: str):
    try:
        if isinstance(value, (str, bytes)):
            return adapter.validate_json(value)
        return adapter.validate_python(value)
    except ValidationError as e:
        raise ContentError(describe_validation_error(field, e)) from e


def parse_non_empty(value: Any, adapter: TypeAdapter, field: str) -> list:
    parsed = parse_structured(value, adapter, field)
    if not parsed:
        raise ContentError(f"{field.capitalize()} must be a non-empty array")
    return parsed


def parse_number(value: Any, field: str, question_type: QuestionType) -> float:
    error = ContentError(f"'{field}' must be a number for {LABELS[question_type]} question")
    if isinstance(value, bool):
        raise error
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            raise error from None
    if not math.isfinite(number):
        raise error
    return number


def parse_integer(value: Any, field: str, question_type: QuestionType) -> int:
    number = parse_number(value, field, question_type)
    if not number.is_integer():
        raise ContentError(f"'{field}' must be a whole number for {LABELS[question_type]} question")
    return int(number)


def _common(row: RowRecord) -> Dict[str, Optional[str]]:
    return {"explanation": cell_text(row, "explanation"), "hint": cell_text(row, "hint")}


def _choice_options(row: RowRecord, question_type: QuestionType) -> List[ChoiceOption]:
    raw = require(row, "options", question_type)
    options = parse_non_empty(raw, _OPTIONS, "options")
    if not any(o.is_correct for o in options):
        raise ContentError("At least one option must be correct")
    return [
        ChoiceOption(id=f"option-{i}", text=o.text, is_correct=o.is_correct, feedback=o.feedback or None)
        for i, o in enumerate(options, start=1)
    ]


# ---------- builders ----------

def build_multiple_choice(row: RowRecord) -> MultipleChoiceContent:
    qt = QuestionType.MULTIPLE_CHOICE
    text = str(require(row, "text", qt)).strip()
    options = _choice_options(row, qt)
    return MultipleChoiceContent(text=text, options=options, **_common(row))


def build_true_false(row: RowRecord) -> TrueFalseContent:
    qt = QuestionType.TRUE_FALSE
    text = str(require(row, "text", qt)).strip()
    raw = require(row, "correctAnswer", qt)
    if isinstance(raw, bool):
        is_true = raw
    elif isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
        is_true = raw.strip().lower() == "true"
    else:
        raise ContentError("'correctAnswer' must be true or false for true/false question")
    return TrueFalseContent(text=text, is_true=is_true, **_common(row))


def build_multiple_response(row: RowRecord) -> MultipleResponseContent:
    qt = QuestionType.MULTIPLE_RESPONSE
    text = str(require(row, "text", qt)).strip()
    options = _choice_options(row, qt)
    return MultipleResponseContent(
        text=text, options=options, partial_credit=cell_flag(row, "partialCredit"), **_common(row)
    )


def build_fill_in_the_blanks(row: RowRecord) -> FillInTheBlanksContent:
    qt = QuestionType.FILL_IN_THE_BLANKS
    text = str(require(row, "text", qt)).strip()
    blanks = parse_non_empty(require(row, "blanks", qt), _BLANKS, "blanks")
    return FillInTheBlanksContent(
        text=text, blanks=blanks, case_sensitive=cell_flag(row, "caseSensitive"), **_common(row)
    )


def build_matching(row: RowRecord) -> MatchingContent:
    qt = QuestionType.MATCHING
    text = str(require(row, "text", qt)).strip()
    pairs = parse_non_empty(require(row, "pairs", qt), _PAIRS, "pairs")
    return MatchingContent(text=text, pairs=pairs, **_common(row))


def build_drag_and_drop(row: RowRecord) -> DragAndDropContent:
    qt = QuestionType.DRAG_AND_DROP
    text = str(require(row, "text", qt)).strip()
    raw_items = require(row, "items", qt)
    raw_zones = require(row, "zones", qt)
    items = parse_non_empty(raw_items, _ITEMS, "items")
    zones = parse_non_empty(raw_zones, _ZONES, "zones")
    zone_ids = {z.id for z in zones}
    for i, item in enumerate(items, start=1):
        if item.correct_zone_id not in zone_ids:
            raise ContentError(f"Item {i} has a correctZoneId that doesn't exist in zones")
    return DragAndDropContent(text=text, items=items, zones=zones, **_common(row))


def build_numeric(row: RowRecord) -> NumericContent:
    qt = QuestionType.NUMERIC
    text = str(require(row, "text", qt)).strip()
    answer = parse_number(require(row, "correctAnswer", qt), "correctAnswer", qt)
    acceptable_range = None
    if is_present(row, "tolerance"):
        tolerance = parse_number(row["tolerance"], "tolerance", qt)
        if tolerance < 0:
            raise ContentError("'tolerance' must not be negative for numeric question")
        acceptable_range = NumericRange(min=answer - tolerance, max=answer + tolerance)
    return NumericContent(
        text=text,
        correct_answer=answer,
        acceptable_range=acceptable_range,
        unit=cell_text(row, "unit"),
        **_common(row),
    )


def build_short_answer(row: RowRecord) -> ShortAnswerContent:
    qt = QuestionType.SHORT_ANSWER
    text = str(require(row, "text", qt)).strip()
    keywords: List[str] = []
    if is_present(row, "keywords"):
        keywords = parse_structured(row["keywords"], _KEYWORDS, "keywords")
    return ShortAnswerContent(
        text=text, correct_answers=keywords, sample_answer=cell_text(row, "sampleAnswer"), **_common(row)
    )


def build_essay(row: RowRecord) -> EssayContent:
    qt = QuestionType.ESSAY
    text = str(require(row, "text", qt)).strip()
    rubric = None
    if is_present(row, "rubric"):
        criteria_in = parse_structured(row["rubric"], _RUBRIC, "rubric")
        if criteria_in:
            criteria = [
                RubricCriterion(
                    id=c.id or f"criterion-{i}",
                    name=c.name or "Criterion",
                    description=c.description or "",
                    points=c.points,
                    levels=c.levels,
                )
                for i, c in enumerate(criteria_in, start=1)
            ]
            rubric = Rubric(criteria=criteria, total_points=sum(c.points for c in criteria))
    word_limit = None
    if is_present(row, "wordLimit"):
        word_limit = parse_integer(row["wordLimit"], "wordLimit", qt)
    return EssayContent(text=text, rubric=rubric, word_count_max=word_limit, **_common(row))


def reject_unsupported(question_type: QuestionType, row: RowRecord) -> TypedContent:
    raise ContentError(f"Question type {question_type.value} is not supported for this import format")


BUILDERS: Dict[QuestionType, Callable[[RowRecord], TypedContent]] = {
    QuestionType.MULTIPLE_CHOICE: build_multiple_choice,
    QuestionType.TRUE_FALSE: build_true_false,
    QuestionType.MULTIPLE_RESPONSE: build_multiple_response,
    QuestionType.FILL_IN_THE_BLANKS: build_fill_in_the_blanks,
    QuestionType.MATCHING: build_matching,
    QuestionType.DRAG_AND_DROP: build_drag_and_drop,
    QuestionType.DRAG_THE_WORDS: partial(reject_unsupported, QuestionType.DRAG_THE_WORDS),
    QuestionType.NUMERIC: build_numeric,
    QuestionType.SEQUENCE: partial(reject_unsupported, QuestionType.SEQUENCE),
    QuestionType.FLASH_CARDS: partial(reject_unsupported, QuestionType.FLASH_CARDS),
    QuestionType.READING: partial(reject_unsupported, QuestionType.READING),
    QuestionType.VIDEO: partial(reject_unsupported, QuestionType.VIDEO),
    QuestionType.SHORT_ANSWER: build_short_answer,
    QuestionType.ESSAY: build_essay,
}

_unregistered = set(QuestionType) - set(BUILDERS)
if _unregistered:
    raise RuntimeError(f"No content builder registered for: {sorted(t.value for t in _unregistered)}")

SUPPORTED_TYPES = frozenset(
    t for t, b in BUILDERS.items() if not (isinstance(b, partial) and b.func is reject_unsupported)
)


def build_content(question_type: QuestionType, row: RowRecord) -> TypedContent:
    """Build typed content for one row; raises ``ContentError`` on any violation."""
    try:
        return BUILDERS[question_type](row)
    except ValidationError as e:
        raise ContentError(describe_validation_error("content", e)) from e
