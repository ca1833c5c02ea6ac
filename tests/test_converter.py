import pytest
from pydantic import ValidationError

from qbank_ingest.models.content import DifficultyLevel, MultipleChoiceContent, QuestionType
from qbank_ingest.models.schemas import QuestionDraft, RowError
from qbank_ingest.services.converter import convert_row, convert_rows
from qbank_ingest.services.decoders import CsvDecoder

from conftest import make_csv, mc_row, tf_row


def test_valid_row_becomes_draft():
    draft = convert_row(mc_row(), 1)
    assert isinstance(draft, QuestionDraft)
    assert draft.question_type is QuestionType.MULTIPLE_CHOICE
    assert draft.difficulty is DifficultyLevel.MEDIUM
    assert draft.subject_id == "subject-123"
    assert draft.grade_level == 5
    assert draft.year == 2023
    assert draft.content.type == "MULTIPLE_CHOICE"
    assert draft.category_ids == []
    assert draft.metadata == {}


def test_missing_common_fields_reported_together():
    row = mc_row()
    del row["title"]
    del row["subjectId"]
    outcome = convert_row(row, 4)
    assert outcome == RowError(row=4, errors=["Missing required fields: title, subjectId"])


def test_blank_required_field_counts_as_missing():
    outcome = convert_row(mc_row(difficulty="   "), 1)
    assert outcome.errors == ["Missing required fields: difficulty"]


def test_invalid_question_type_echoed():
    outcome = convert_row(mc_row(questionType="CROSSWORD"), 2)
    assert outcome.errors == ["Invalid question type: CROSSWORD"]


def test_invalid_difficulty_echoed():
    outcome = convert_row(mc_row(difficulty="impossible"), 2)
    assert outcome.errors == ["Invalid difficulty: impossible"]


@pytest.mark.parametrize("raw,expected", [
    ("multiple choice", QuestionType.MULTIPLE_CHOICE),
    ("Multiple-Choice", QuestionType.MULTIPLE_CHOICE),
    (" true_false ", QuestionType.TRUE_FALSE),
])
def test_question_type_is_case_insensitive(raw, expected):
    row = mc_row() if expected is QuestionType.MULTIPLE_CHOICE else tf_row()
    row["questionType"] = raw
    assert convert_row(row, 1).question_type is expected


def test_difficulty_aliases():
    assert convert_row(mc_row(difficulty="very easy"), 1).difficulty is DifficultyLevel.VERY_EASY
    assert convert_row(mc_row(difficulty="hard"), 1).difficulty is DifficultyLevel.HARD


def test_content_error_becomes_row_error():
    row = mc_row()
    del row["options"]
    outcome = convert_row(row, 7)
    assert outcome == RowError(row=7, errors=["Missing required field 'options' for multiple choice question"])


def test_optional_integers():
    assert convert_row(mc_row(gradeLevel=7.0, year="2021"), 1).grade_level == 7
    assert convert_row(mc_row(gradeLevel=""), 1).grade_level is None
    outcome = convert_row(mc_row(gradeLevel="fifth"), 3)
    assert outcome.errors == ["'gradeLevel' must be an integer"]
    assert convert_row(mc_row(year=True), 1).errors == ["'year' must be an integer"]


def test_optional_text_fields_trimmed_or_none():
    draft = convert_row(mc_row(courseId="  course-1 ", topicId="", sourceReference=None), 1)
    assert draft.course_id == "course-1"
    assert draft.topic_id is None
    assert draft.source_reference is None


@pytest.mark.parametrize("raw", ["cat-1, cat-2", '["cat-1", "cat-2"]', ["cat-1", "cat-2"]])
def test_category_ids(raw):
    assert convert_row(mc_row(categoryIds=raw), 1).category_ids == ["cat-1", "cat-2"]


def test_category_ids_bad_json():
    outcome = convert_row(mc_row(categoryIds='["cat-1", '), 1)
    assert outcome.errors[0].startswith("Invalid JSON format for categoryIds")


def test_metadata_must_be_object():
    assert convert_row(mc_row(metadata='{"source": "exam-2023"}'), 1).metadata == {"source": "exam-2023"}
    assert convert_row(mc_row(metadata={"a": 1}), 1).metadata == {"a": 1}
    assert convert_row(mc_row(metadata="[1, 2]"), 1).errors == ["'metadata' must be a JSON object"]


def test_content_must_match_question_type():
    content = MultipleChoiceContent(text="Pick", options=[{"id": "option-1", "text": "A", "isCorrect": True}])
    with pytest.raises(ValidationError, match="does not match question type"):
        QuestionDraft(
            title="Q", question_type=QuestionType.TRUE_FALSE, difficulty=DifficultyLevel.EASY,
            subject_id="s", content=content,
        )


def test_convert_rows_keeps_source_row_numbers():
    bad = mc_row()
    del bad["options"]
    result = convert_rows([mc_row(title="A"), bad, tf_row(title="C"), {"title": "D"}])
    assert [p.row for p in result.drafts] == [1, 3]
    assert [p.draft.title for p in result.drafts] == ["A", "C"]
    assert [e.row for e in result.errors] == [2, 4]
    assert result.errors[1].errors == ["Missing required fields: questionType, difficulty, subjectId"]


def test_convert_rows_empty():
    result = convert_rows([])
    assert result.drafts == [] and result.errors == []


def test_category_ids_are_deduplicated_in_order():
    assert convert_row(mc_row(categoryIds="geo, europe,geo"), 1).category_ids == ["geo", "europe"]
    assert convert_row(mc_row(categoryIds=["b", "a", "b"]), 1).category_ids == ["b", "a"]


def test_identifier_text_survives_csv_decoding():
    decoded = CsvDecoder().decode(make_csv([mc_row(title="1.50", subjectId="0.10", topicId="1e3")]))
    draft = convert_row(decoded.rows[0], 1)
    assert (draft.title, draft.subject_id, draft.topic_id) == ("1.50", "0.10", "1e3")
    assert draft.grade_level == 5
