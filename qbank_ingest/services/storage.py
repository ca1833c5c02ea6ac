"""
Storage port used by the commit engine, and its SQLAlchemy implementation.

The validation stage never touches storage; only the commit engine and the
API talk to a ``QuestionStore``.
"""
import logging
from typing import Callable, Optional, Protocol

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from qbank_ingest.core.errors import StorageError
from qbank_ingest.models.orm import (
    Question, QuestionBank, QuestionCategoryMapping, QuestionUsageStats, SystemStatus,
)
from qbank_ingest.models.schemas import QuestionBankRef, QuestionDraft

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Question conflicts with data already stored in the question bank"
UNAVAILABLE_MESSAGE = "Question storage is unavailable, please retry the upload"
SAVE_FAILED_MESSAGE = "Question could not be saved"


class QuestionStore(Protocol):
    def find_active_question_bank_by_id(self, question_bank_id: str) -> Optional[QuestionBankRef]: ...

    def begin_chunk(self, size: int) -> None:
        """Called before each chunk; raising here fails the whole chunk."""
        ...

    def save_question(
        self, bank: QuestionBankRef, draft: QuestionDraft, partition_key: str, created_by: str
    ) -> str:
        """Write the question, its category mappings and its usage-stats row atomically."""
        ...


def bank_partition_key(institution_id: str) -> str:
    return f"inst_{institution_id}"


class SqlQuestionStore:
    """``QuestionStore`` over SQLAlchemy. Each question commits in its own session."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def find_active_question_bank_by_id(self, question_bank_id: str) -> Optional[QuestionBankRef]:
        with self.session_factory() as db:
            qb = db.scalar(
                select(QuestionBank).where(
                    QuestionBank.id == question_bank_id, QuestionBank.status == SystemStatus.ACTIVE
                )
            )
            if not qb:
                return None
            return QuestionBankRef(id=qb.id, institution_id=qb.institution_id, name=qb.name)

    def begin_chunk(self, size: int) -> None:
        try:
            with self.session_factory() as db:
                db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Storage check before chunk of %d failed: %s", size, e)
            raise StorageError(UNAVAILABLE_MESSAGE) from e

    def save_question(
        self, bank: QuestionBankRef, draft: QuestionDraft, partition_key: str, created_by: str
    ) -> str:
        with self.session_factory() as db:
            try:
                q = Question(
                    question_bank_id=bank.id,
                    title=draft.title,
                    question_type=draft.question_type,
                    difficulty=draft.difficulty,
                    content=draft.content.model_dump(mode="json", by_alias=True, exclude_none=True),
                    subject_id=draft.subject_id,
                    course_id=draft.course_id,
                    topic_id=draft.topic_id,
                    grade_level=draft.grade_level,
                    year=draft.year,
                    source_reference=draft.source_reference,
                    metadata_json=draft.metadata,
                    status=SystemStatus.ACTIVE,
                    partition_key=partition_key,
                    created_by=created_by,
                )
                db.add(q); db.flush()
                question_id = q.id
                for category_id in draft.category_ids:
                    db.add(QuestionCategoryMapping(question_id=question_id, category_id=category_id))
                db.add(QuestionUsageStats(question_id=question_id))
                db.commit()
            except IntegrityError as e:
                db.rollback()
                logger.warning("Integrity error saving question %r: %s", draft.title, e.orig)
                raise StorageError(CONFLICT_MESSAGE) from e
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Database error saving question %r: %s", draft.title, e)
                raise StorageError(SAVE_FAILED_MESSAGE) from e
            return question_id

    def create_question_bank(
        self, name: str, institution_id: str, created_by: str, description: Optional[str] = None
    ) -> QuestionBankRef:
        with self.session_factory() as db:
            qb = QuestionBank(
                name=name,
                description=description,
                institution_id=institution_id,
                status=SystemStatus.ACTIVE,
                partition_key=bank_partition_key(institution_id),
                created_by=created_by,
            )
            db.add(qb)
            db.commit()
            logger.info("Created question bank %s for institution %s", qb.id, institution_id)
            return QuestionBankRef(id=qb.id, institution_id=qb.institution_id, name=qb.name)
