import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from qbank_ingest.core.errors import StorageError
from qbank_ingest.models.orm import Question, QuestionCategoryMapping, QuestionUsageStats
from qbank_ingest.models.schemas import PendingQuestion
from qbank_ingest.services.commit import BatchCommitEngine
from qbank_ingest.services.converter import convert_row
from qbank_ingest.services.pipeline import IngestPipeline
from qbank_ingest.services.storage import CONFLICT_MESSAGE, UNAVAILABLE_MESSAGE, SqlQuestionStore

from conftest import make_csv, mc_row


def _count(session_factory, model):
    with session_factory() as db:
        return db.scalar(select(func.count()).select_from(model))


def _draft(**overrides):
    return convert_row(mc_row(**overrides), 1)


def test_save_question_writes_question_mappings_and_stats(sql_store, sql_bank, session_factory):
    draft = _draft(categoryIds="geo,europe")
    question_id = sql_store.save_question(sql_bank, draft, "inst_42_grade_5_subj_subject-123", "author-1")
    with session_factory() as db:
        assert db.get(Question, question_id).title == draft.title
        assert db.get(QuestionUsageStats, question_id).usage_count == 0
    assert _count(session_factory, QuestionCategoryMapping) == 2


def test_failed_save_leaves_nothing_behind(sql_store, sql_bank, session_factory):
    draft = _draft().model_copy(update={"category_ids": ["geo", "geo"]})
    with pytest.raises(StorageError) as e:
        sql_store.save_question(sql_bank, draft, "inst_42_grade_5_subj_subject-123", "author-1")
    assert str(e.value) == CONFLICT_MESSAGE
    assert _count(session_factory, Question) == 0
    assert _count(session_factory, QuestionCategoryMapping) == 0
    assert _count(session_factory, QuestionUsageStats) == 0


def test_failed_save_reports_short_message(sql_store, sql_bank, session_factory):
    ok = PendingQuestion(row=1, draft=_draft(title="Q1"))
    bad = PendingQuestion(row=2, draft=_draft(title="Q2").model_copy(update={"category_ids": ["geo", "geo"]}))
    result = BatchCommitEngine(sql_store).commit(sql_bank.id, [ok, bad])
    assert (result.successful, result.failed) == (1, 1)
    assert result.errors[0].row == 2
    assert result.errors[0].errors == [CONFLICT_MESSAGE]
    assert "SQL" not in result.errors[0].errors[0]
    assert _count(session_factory, Question) == 1
    assert _count(session_factory, QuestionUsageStats) == 1


def test_repeated_category_ids_in_upload_are_saved_once(sql_store, sql_bank, session_factory):
    data = make_csv([mc_row(categoryIds="geo,geo, europe")])
    report = IngestPipeline(sql_store).ingest(data, "csv", sql_bank.id)
    assert (report.successful, report.failed) == (1, 0)
    assert _count(session_factory, Question) == 1
    assert _count(session_factory, QuestionUsageStats) == 1
    with session_factory() as db:
        assert sorted(db.scalars(select(QuestionCategoryMapping.category_id)).all()) == ["europe", "geo"]


def test_unreachable_database_fails_the_chunk():
    def broken_session():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    store = SqlQuestionStore(broken_session)
    with pytest.raises(StorageError) as e:
        store.begin_chunk(100)
    assert str(e.value) == UNAVAILABLE_MESSAGE
