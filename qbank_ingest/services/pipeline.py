"""
Bulk import pipeline: decode, convert each row, commit.

Decode failures and a missing question bank abort the whole call. Everything
else ends up in the returned ``BatchReport``.
"""
import logging
import threading
from typing import Optional, Sequence

from qbank_ingest.models.schemas import BatchReport, RowRecord
from qbank_ingest.services.commit import BatchCommitEngine
from qbank_ingest.services.converter import ConversionResult, convert_rows
from qbank_ingest.services.decoders import FileFormat, decode, get_decoder
from qbank_ingest.services.storage import QuestionStore

logger = logging.getLogger(__name__)


def validate_rows(rows: Sequence[RowRecord]) -> ConversionResult:
    """Run the pure validation stage over decoded rows."""
    return convert_rows(rows)


def validate_file(data: bytes, file_format: FileFormat | str) -> BatchReport:
    """Validate a file without a question bank or any storage access."""
    decoded = decode(data, file_format)
    conversion = validate_rows(decoded.rows)
    return BatchReport(
        total=decoded.total_rows,
        successful=len(conversion.drafts),
        failed=len(conversion.errors),
        errors=conversion.errors,
    )


class IngestPipeline:
    def __init__(
        self,
        store: QuestionStore,
        chunk_size: Optional[int] = None,
        chunk_workers: Optional[int] = None,
        lock_backend: Optional[str] = None,
    ):
        self.store = store
        self.engine = BatchCommitEngine(store, chunk_size=chunk_size, chunk_workers=chunk_workers, lock_backend=lock_backend)

    def ingest(
        self,
        data: bytes,
        file_format: FileFormat | str,
        question_bank_id: str,
        validate_only: bool = False,
        created_by: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchReport:
        decoder = get_decoder(file_format)
        decoded = decoder.decode(data)
        conversion = validate_rows(decoded.rows)
        logger.info(
            "Bulk upload to bank %s (%s, validate_only=%s): %d rows, %d valid, %d rejected",
            question_bank_id, decoder.format.value, validate_only,
            decoded.total_rows, len(conversion.drafts), len(conversion.errors),
        )

        committed = self.engine.commit(
            question_bank_id,
            conversion.drafts,
            validate_only=validate_only,
            created_by=created_by,
            cancel_event=cancel_event,
        )

        errors = sorted(conversion.errors + committed.errors, key=lambda e: e.row)
        return BatchReport(
            total=decoded.total_rows,
            successful=committed.successful,
            failed=len(conversion.errors) + committed.failed,
            errors=errors,
        )
