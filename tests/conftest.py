import csv
import io
import os
import threading

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOCK_BACKEND", "local")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from qbank_ingest.models.content import QuestionType
from qbank_ingest.models.orm import Base
from qbank_ingest.models.schemas import PendingQuestion, QuestionBankRef
from qbank_ingest.services.converter import convert_row
from qbank_ingest.services.samples import generate_sample_row
from qbank_ingest.services.storage import SqlQuestionStore


def make_csv(rows):
    """Serialize row dicts as CSV bytes; the header is the union of keys in first-seen order."""
    headers = []
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=headers, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buf.getvalue().encode("utf-8")


def mc_row(**overrides):
    row = generate_sample_row(QuestionType.MULTIPLE_CHOICE)
    row.update(overrides)
    return row


def tf_row(**overrides):
    row = generate_sample_row(QuestionType.TRUE_FALSE)
    row.update(overrides)
    return row


def make_pending(n, **overrides):
    pending = []
    for i in range(1, n + 1):
        draft = convert_row(mc_row(title=f"Q{i}", **overrides), i)
        pending.append(PendingQuestion(row=i, draft=draft))
    return pending


class RecordingStore:
    """In-memory QuestionStore that counts writes and can be told to fail."""

    def __init__(self, fail_titles=(), fail_chunks=(), on_chunk=None):
        self.banks = {"bank-1": QuestionBankRef(id="bank-1", institution_id="inst-9", name="Bank")}
        self.fail_titles = set(fail_titles)
        self.fail_chunks = set(fail_chunks)
        self.on_chunk = on_chunk
        self.questions = []
        self.mappings = []
        self.usage_stats = []
        self.chunks_begun = 0
        self._lock = threading.Lock()

    @property
    def writes(self):
        return len(self.questions) + len(self.mappings) + len(self.usage_stats)

    def find_active_question_bank_by_id(self, question_bank_id):
        return self.banks.get(question_bank_id)

    def begin_chunk(self, size):
        with self._lock:
            index = self.chunks_begun
            self.chunks_begun += 1
        if self.on_chunk:
            self.on_chunk(index)
        if index in self.fail_chunks:
            raise RuntimeError("storage unavailable")

    def save_question(self, bank, draft, partition_key, created_by):
        if draft.title in self.fail_titles:
            raise RuntimeError(f"duplicate question '{draft.title}'")
        with self._lock:
            question_id = f"q-{len(self.questions) + 1}"
            self.questions.append({"id": question_id, "title": draft.title, "partition_key": partition_key,
                                   "created_by": created_by, "draft": draft})
            self.mappings.extend((question_id, c) for c in draft.category_ids)
            self.usage_stats.append(question_id)
        return question_id


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool, future=True
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SqlQuestionStore(session_factory)


@pytest.fixture
def sql_bank(sql_store):
    return sql_store.create_question_bank(name="Grade 5 Science", institution_id="42", created_by="tester")
