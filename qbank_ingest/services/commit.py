"""
Batch commit engine.

Validated drafts are persisted in fixed-size chunks. Chunks only bound the
load per storage round; they carry no meaning. Every draft is written on its
own, so one failing question never takes its siblings down with it. Errors
always point back at the source row the draft came from.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from qbank_ingest.core.config import settings
from qbank_ingest.core.errors import QuestionBankNotFound
from qbank_ingest.core.locks import question_bank_lock
from qbank_ingest.models.schemas import PendingQuestion, QuestionBankRef, RowError
from qbank_ingest.services.storage import QuestionStore

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Upload cancelled before this question was saved"


def partition_key(institution_id: str, grade_level: Optional[int], subject_id: str) -> str:
    return f"inst_{institution_id}_grade_{grade_level or 0}_subj_{subject_id}"


def chunked(items: Sequence[PendingQuestion], size: int) -> Iterator[Sequence[PendingQuestion]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


@dataclass
class ChunkOutcome:
    successful: int = 0
    errors: List[RowError] = field(default_factory=list)


@dataclass
class CommitResult:
    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[RowError] = field(default_factory=list)


class BatchCommitEngine:
    def __init__(
        self,
        store: QuestionStore,
        chunk_size: Optional[int] = None,
        chunk_workers: Optional[int] = None,
        lock_backend: Optional[str] = None,
    ):
        self.store = store
        self.chunk_size = chunk_size or settings.BULK_CHUNK_SIZE
        self.chunk_workers = chunk_workers or settings.BULK_CHUNK_WORKERS
        self.lock_backend = lock_backend
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

    def commit(
        self,
        question_bank_id: str,
        pending: Sequence[PendingQuestion],
        validate_only: bool = False,
        created_by: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommitResult:
        bank = self.store.find_active_question_bank_by_id(question_bank_id)
        if bank is None:
            raise QuestionBankNotFound(question_bank_id)

        result = CommitResult(total=len(pending))
        if validate_only:
            result.successful = len(pending)
            return result

        created_by = created_by or settings.DEFAULT_CREATED_BY
        chunks = list(chunked(pending, self.chunk_size))
        with question_bank_lock(bank.id, self.lock_backend):
            outcomes = self._run_chunks(bank, chunks, created_by, cancel_event)

        for outcome in outcomes:
            result.successful += outcome.successful
            result.errors.extend(outcome.errors)
        result.failed = sum(len(o.errors) for o in outcomes)
        logger.info(
            "Committed %d/%d questions to bank %s in %d chunk(s)",
            result.successful, result.total, bank.id, len(chunks),
        )
        return result

    def _run_chunks(self, bank, chunks, created_by, cancel_event) -> List[ChunkOutcome]:
        def run(index_and_chunk):
            index, chunk = index_and_chunk
            if cancel_event is not None and cancel_event.is_set():
                return ChunkOutcome(errors=[RowError(row=p.row, errors=[CANCELLED_MESSAGE]) for p in chunk])
            return self._commit_chunk(bank, index, chunk, created_by)

        if self.chunk_workers <= 1 or len(chunks) <= 1:
            return [run(item) for item in enumerate(chunks)]
        # map() yields in submission order, so error attribution stays stable
        with ThreadPoolExecutor(max_workers=self.chunk_workers) as pool:
            return list(pool.map(run, enumerate(chunks)))

    def _commit_chunk(
        self, bank: QuestionBankRef, index: int, chunk: Sequence[PendingQuestion], created_by: str
    ) -> ChunkOutcome:
        try:
            self.store.begin_chunk(len(chunk))
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error("Chunk %d for bank %s failed before processing: %s", index, bank.id, message)
            return ChunkOutcome(errors=[RowError(row=p.row, errors=[message]) for p in chunk])

        outcome = ChunkOutcome()
        for item in chunk:
            try:
                self._commit_one(bank, item, created_by)
                outcome.successful += 1
            except Exception as e:
                message = str(e) or e.__class__.__name__
                logger.warning("Failed to save question from row %d: %s", item.row, message)
                outcome.errors.append(RowError(row=item.row, errors=[message]))
        return outcome

    def _commit_one(self, bank: QuestionBankRef, item: PendingQuestion, created_by: str) -> str:
        draft = item.draft
        key = partition_key(bank.institution_id, draft.grade_level, draft.subject_id)
        return self.store.save_question(bank, draft, key, created_by)
