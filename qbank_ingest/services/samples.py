"""
Sample files for the "download sample" button.

Pure functions: the header template, one sample row and a complete sample
file per question type and file format.
"""
import io
from typing import Dict, List

import orjson
import pandas as pd

from qbank_ingest.models.content import DifficultyLevel, QuestionType
from qbank_ingest.services.decoders import FileFormat

COMMON_HEADERS: List[str] = [
    "title",
    "questionType",
    "difficulty",
    "subjectId",
    "courseId",
    "topicId",
    "gradeLevel",
    "year",
    "sourceReference",
]

QUESTION_TYPE_HEADERS: Dict[QuestionType, List[str]] = {
    QuestionType.MULTIPLE_CHOICE: ["text", "options", "explanation", "hint"],
    QuestionType.TRUE_FALSE: ["text", "correctAnswer", "explanation", "hint"],
    QuestionType.MULTIPLE_RESPONSE: ["text", "options", "explanation", "hint"],
    QuestionType.FILL_IN_THE_BLANKS: ["text", "blanks", "explanation", "hint"],
    QuestionType.MATCHING: ["text", "pairs", "explanation", "hint"],
    QuestionType.DRAG_AND_DROP: ["text", "items", "zones", "explanation", "hint"],
    QuestionType.DRAG_THE_WORDS: ["text", "explanation", "hint"],
    QuestionType.NUMERIC: ["text", "correctAnswer", "tolerance", "explanation", "hint"],
    QuestionType.SEQUENCE: ["text", "items", "explanation", "hint"],
    QuestionType.FLASH_CARDS: ["cards"],
    QuestionType.READING: ["passage", "questions"],
    QuestionType.VIDEO: ["videoUrl", "questions"],
    QuestionType.SHORT_ANSWER: ["text", "sampleAnswer", "keywords", "explanation", "hint"],
    QuestionType.ESSAY: ["text", "rubric", "wordLimit", "explanation", "hint"],
}

# Columns whose cells hold serialized JSON in CSV/Excel samples
STRUCTURED_COLUMNS = {"options", "blanks", "pairs", "items", "zones", "rubric", "keywords", "cards", "questions"}


def _json(value) -> str:
    return orjson.dumps(value).decode()


def headers_for(question_type: QuestionType) -> List[str]:
    return COMMON_HEADERS + QUESTION_TYPE_HEADERS[QuestionType(question_type)]


def generate_template(question_type: QuestionType) -> str:
    """Header line for an upload file of the given type."""
    return ",".join(headers_for(question_type)) + "\n"


def generate_sample_row(question_type: QuestionType) -> Dict[str, str]:
    question_type = QuestionType(question_type)
    row: Dict[str, str] = {
        "title": f"Sample {question_type.value} Question",
        "questionType": question_type.value,
        "difficulty": DifficultyLevel.MEDIUM.value,
        "subjectId": "subject-123",
        "courseId": "course-456",
        "topicId": "topic-789",
        "gradeLevel": "5",
        "year": "2023",
        "sourceReference": "Sample Source",
    }

    if question_type == QuestionType.MULTIPLE_CHOICE:
        row["text"] = "What is the capital of France?"
        row["options"] = _json([
            {"text": "Paris", "isCorrect": True},
            {"text": "London", "isCorrect": False},
            {"text": "Berlin", "isCorrect": False},
            {"text": "Madrid", "isCorrect": False},
        ])
        row["explanation"] = "Paris is the capital of France."
        row["hint"] = "Think of the Eiffel Tower."
    elif question_type == QuestionType.TRUE_FALSE:
        row["text"] = "Paris is the capital of France."
        row["correctAnswer"] = "true"
        row["explanation"] = "Paris is indeed the capital of France."
        row["hint"] = "Think of the Eiffel Tower."
    elif question_type == QuestionType.MULTIPLE_RESPONSE:
        row["text"] = "Which of the following are planets in our solar system?"
        row["options"] = _json([
            {"text": "Earth", "isCorrect": True},
            {"text": "Mars", "isCorrect": True},
            {"text": "Sun", "isCorrect": False},
            {"text": "Moon", "isCorrect": False},
        ])
        row["explanation"] = "Earth and Mars are planets in our solar system."
        row["hint"] = "The Sun is a star, and the Moon is a satellite."
    elif question_type == QuestionType.FILL_IN_THE_BLANKS:
        row["text"] = "The capital of France is [blank-1] and it lies on the river [blank-2]."
        row["blanks"] = _json([
            {"id": "blank-1", "correctAnswers": ["Paris"]},
            {"id": "blank-2", "correctAnswers": ["Seine", "the Seine"], "feedback": "The Seine flows through Paris."},
        ])
        row["explanation"] = "Paris sits on the Seine."
        row["hint"] = "Think of the Eiffel Tower."
    elif question_type == QuestionType.MATCHING:
        row["text"] = "Match each country with its capital."
        row["pairs"] = _json([
            {"id": "pair-1", "left": "France", "right": "Paris"},
            {"id": "pair-2", "left": "Germany", "right": "Berlin"},
            {"id": "pair-3", "left": "Spain", "right": "Madrid"},
        ])
        row["explanation"] = "Each capital is the seat of its national government."
        row["hint"] = "Berlin is in Germany."
    elif question_type == QuestionType.DRAG_AND_DROP:
        row["text"] = "Drag each animal to its habitat."
        row["items"] = _json([
            {"id": "item-1", "text": "Camel", "correctZoneId": "zone-1"},
            {"id": "item-2", "text": "Penguin", "correctZoneId": "zone-2"},
        ])
        row["zones"] = _json([
            {"id": "zone-1", "text": "Desert", "x": 0, "y": 0, "width": 200, "height": 150},
            {"id": "zone-2", "text": "Antarctica", "x": 220, "y": 0, "width": 200, "height": 150},
        ])
        row["explanation"] = "Camels live in deserts and penguins in Antarctica."
        row["hint"] = "Think about temperature."
    elif question_type == QuestionType.NUMERIC:
        row["text"] = "What is the boiling point of water at sea level in degrees Celsius?"
        row["correctAnswer"] = "100"
        row["tolerance"] = "1"
        row["explanation"] = "Water boils at 100 degrees Celsius at sea level."
        row["hint"] = "It is a round number."
    elif question_type == QuestionType.SHORT_ANSWER:
        row["text"] = "Name the process by which plants make food using sunlight."
        row["sampleAnswer"] = "Photosynthesis"
        row["keywords"] = _json(["photosynthesis"])
        row["explanation"] = "Plants convert light energy into chemical energy."
        row["hint"] = "It starts with 'photo'."
    elif question_type == QuestionType.ESSAY:
        row["text"] = "Discuss the causes of the First World War."
        row["rubric"] = _json([
            {"id": "criterion-1", "name": "Content", "description": "Covers the main causes", "points": 6},
            {"id": "criterion-2", "name": "Structure", "description": "Clear argument and flow", "points": 4},
        ])
        row["wordLimit"] = "500"
        row["explanation"] = "Consider alliances, militarism, imperialism and nationalism."
        row["hint"] = "Start with the assassination in Sarajevo."

    for header in QUESTION_TYPE_HEADERS[question_type]:
        row.setdefault(header, "")
    return row


def _json_ready(row: Dict[str, str]) -> Dict[str, object]:
    out: Dict[str, object] = {}
    for key, value in row.items():
        if value == "":
            continue
        out[key] = orjson.loads(value) if key in STRUCTURED_COLUMNS else value
    return out


def generate_sample_file(question_type: QuestionType, file_format: FileFormat = FileFormat.CSV) -> bytes:
    """A complete one-question sample file in the requested format."""
    file_format = FileFormat(file_format)
    headers = headers_for(question_type)
    row = generate_sample_row(question_type)
    frame = pd.DataFrame([[row.get(h, "") for h in headers]], columns=headers)

    if file_format == FileFormat.CSV:
        return frame.to_csv(index=False, lineterminator="\n").encode("utf-8")

    if file_format == FileFormat.EXCEL:
        buf = io.BytesIO()
        frame.to_excel(buf, index=False, sheet_name="Questions", engine="openpyxl")
        return buf.getvalue()

    return orjson.dumps([_json_ready(row)], option=orjson.OPT_INDENT_2)


def sample_filename(question_type: QuestionType, file_format: FileFormat = FileFormat.CSV) -> str:
    return f"sample_{QuestionType(question_type).value.lower()}_questions.{FileFormat(file_format).extension}"
