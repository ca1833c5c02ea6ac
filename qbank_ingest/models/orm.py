import enum
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, JSON, String,
    Text, UniqueConstraint, func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from qbank_ingest.models.content import DifficultyLevel, QuestionType


class Base(DeclarativeBase): pass


def _uuid() -> str:
    return str(uuid.uuid4())


class SystemStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class QuestionBank(Base):
    __tablename__ = "question_banks"
    __table_args__ = (
        Index("idx_qb_institution", "institution_id"),
        Index("idx_qb_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    institution_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[SystemStatus] = mapped_column(SQLEnum(SystemStatus), default=SystemStatus.ACTIVE, nullable=False)
    partition_key: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    questions: Mapped[List["Question"]] = relationship(back_populates="question_bank")


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("idx_questions_bank", "question_bank_id"),
        Index("idx_questions_partition", "partition_key"),
        Index("idx_questions_subject", "subject_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    question_bank_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("question_banks.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(SQLEnum(QuestionType), nullable=False)
    difficulty: Mapped[DifficultyLevel] = mapped_column(
        SQLEnum(DifficultyLevel), nullable=False, default=DifficultyLevel.MEDIUM
    )
    content: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[Optional[str]] = mapped_column(String(64))
    topic_id: Mapped[Optional[str]] = mapped_column(String(64))
    grade_level: Mapped[Optional[int]] = mapped_column(Integer)
    year: Mapped[Optional[int]] = mapped_column(Integer)
    source_reference: Mapped[Optional[str]] = mapped_column(String(500))
    metadata_json: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    status: Mapped[SystemStatus] = mapped_column(SQLEnum(SystemStatus), default=SystemStatus.ACTIVE, nullable=False)
    partition_key: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    question_bank: Mapped["QuestionBank"] = relationship(back_populates="questions")
    categories: Mapped[List["QuestionCategoryMapping"]] = relationship(
        back_populates="question", cascade="all, delete-orphan"
    )
    usage_stats: Mapped[Optional["QuestionUsageStats"]] = relationship(
        back_populates="question", cascade="all, delete-orphan"
    )


class QuestionCategoryMapping(Base):
    __tablename__ = "question_category_mappings"
    __table_args__ = (
        UniqueConstraint("question_id", "category_id", name="uq_question_category"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    question_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[str] = mapped_column(String(64), nullable=False)

    question: Mapped["Question"] = relationship(back_populates="categories")


class QuestionUsageStats(Base):
    __tablename__ = "question_usage_stats"

    question_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True
    )
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, default=0)
    incorrect_count: Mapped[int] = mapped_column(Integer, default=0)
    partial_count: Mapped[int] = mapped_column(Integer, default=0)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    question: Mapped["Question"] = relationship(back_populates="usage_stats")
