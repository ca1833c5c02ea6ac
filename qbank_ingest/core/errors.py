"""
Domain exceptions for the import pipeline.

Abort-class errors (``DecodeError``, ``QuestionBankNotFound``) stop a whole
batch and reach the caller. ``ContentError`` is row-class: it never leaves the
converter, which turns it into a ``RowError`` value.
"""


class IngestError(Exception):
    """Base class for import pipeline errors."""


class DecodeError(IngestError):
    """The uploaded file could not be decoded into row records."""


class QuestionBankNotFound(IngestError):
    """The target question bank does not exist or is not active."""

    def __init__(self, question_bank_id: str):
        super().__init__("Question bank not found")
        self.question_bank_id = question_bank_id


class ContentError(IngestError):
    """A row's question content violates its type's schema."""


class StorageError(IngestError):
    """Persisting one question failed; the message is safe to show to uploaders."""
