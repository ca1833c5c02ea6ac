"""
Question content schemas.

Every importable question type owns one content model; the models share a
literal ``type`` tag so ``TypedContent`` is a discriminated union. The ``*In``
models describe the serialized sub-documents found in upload cells (option
lists, blanks, pairs, drag items and zones, rubric criteria).
"""
import enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    MULTIPLE_RESPONSE = "MULTIPLE_RESPONSE"
    FILL_IN_THE_BLANKS = "FILL_IN_THE_BLANKS"
    MATCHING = "MATCHING"
    DRAG_AND_DROP = "DRAG_AND_DROP"
    DRAG_THE_WORDS = "DRAG_THE_WORDS"
    NUMERIC = "NUMERIC"
    SEQUENCE = "SEQUENCE"
    FLASH_CARDS = "FLASH_CARDS"
    READING = "READING"
    VIDEO = "VIDEO"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"


class DifficultyLevel(str, enum.Enum):
    VERY_EASY = "VERY_EASY"
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    VERY_HARD = "VERY_HARD"


NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Embedded sub-documents ==========

class OptionIn(CamelModel):
    text: NonBlankStr
    is_correct: bool
    feedback: Optional[str] = None


class BlankIn(CamelModel):
    id: NonBlankStr
    correct_answers: List[NonBlankStr] = Field(min_length=1)
    feedback: Optional[str] = None


class PairIn(CamelModel):
    id: NonBlankStr
    left: NonBlankStr
    right: NonBlankStr


class DragItemIn(CamelModel):
    id: NonBlankStr
    text: NonBlankStr
    correct_zone_id: NonBlankStr
    feedback: Optional[str] = None


class DropZoneIn(CamelModel):
    id: NonBlankStr
    text: NonBlankStr
    x: float = 0
    y: float = 0
    width: float = 100
    height: float = 100


class RubricLevelIn(CamelModel):
    name: str = ""
    description: str = ""
    points: float = 0


class RubricCriterionIn(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    points: float = 0
    levels: List[RubricLevelIn] = Field(default_factory=list)


# ========== Typed content ==========

class ChoiceOption(CamelModel):
    id: str
    text: str
    is_correct: bool
    feedback: Optional[str] = None


class NumericRange(CamelModel):
    min: float
    max: float


class RubricCriterion(CamelModel):
    id: str
    name: str
    description: str
    points: float
    levels: List[RubricLevelIn] = Field(default_factory=list)


class Rubric(CamelModel):
    criteria: List[RubricCriterion]
    total_points: float


class ContentBase(CamelModel):
    text: str
    explanation: Optional[str] = None
    hint: Optional[str] = None


class MultipleChoiceContent(ContentBase):
    type: Literal["MULTIPLE_CHOICE"] = "MULTIPLE_CHOICE"
    options: List[ChoiceOption]


class TrueFalseContent(ContentBase):
    type: Literal["TRUE_FALSE"] = "TRUE_FALSE"
    is_true: bool


class MultipleResponseContent(ContentBase):
    type: Literal["MULTIPLE_RESPONSE"] = "MULTIPLE_RESPONSE"
    options: List[ChoiceOption]
    partial_credit: bool = False


class FillInTheBlanksContent(ContentBase):
    type: Literal["FILL_IN_THE_BLANKS"] = "FILL_IN_THE_BLANKS"
    blanks: List[BlankIn]
    case_sensitive: bool = False


class MatchingContent(ContentBase):
    type: Literal["MATCHING"] = "MATCHING"
    pairs: List[PairIn]


class DragAndDropContent(ContentBase):
    type: Literal["DRAG_AND_DROP"] = "DRAG_AND_DROP"
    items: List[DragItemIn]
    zones: List[DropZoneIn]


class NumericContent(ContentBase):
    type: Literal["NUMERIC"] = "NUMERIC"
    correct_answer: float
    acceptable_range: Optional[NumericRange] = None
    unit: Optional[str] = None


class ShortAnswerContent(ContentBase):
    type: Literal["SHORT_ANSWER"] = "SHORT_ANSWER"
    correct_answers: List[str] = Field(default_factory=list)
    sample_answer: Optional[str] = None


class EssayContent(ContentBase):
    type: Literal["ESSAY"] = "ESSAY"
    rubric: Optional[Rubric] = None
    word_count_max: Optional[int] = None


TypedContent = Annotated[
    Union[
        MultipleChoiceContent,
        TrueFalseContent,
        MultipleResponseContent,
        FillInTheBlanksContent,
        MatchingContent,
        DragAndDropContent,
        NumericContent,
        ShortAnswerContent,
        EssayContent,
    ],
    Field(discriminator="type"),
]
