"""
Ingestion Error Taxonomy

DESIGN DECISION: Row- and line-level failures never abort a document.
They are raised close to where they happen and converted to diagnostics by
the parser that owns the row. Only upload, extraction and persistence
failures reach the caller as exceptions.

Persistence errors live with the storage interface
(`finance_engine.services.storage.interface.PersistenceError`).
"""

from typing import Optional

from pydantic import ValidationError

from finance_engine.models.transaction import Diagnostic


class IngestionError(Exception):
    """Base exception for the ingestion engine."""
    pass


class RowParseError(IngestionError):
    """A spreadsheet or file row failed required-field coercion."""

    def __init__(
        self,
        message: str,
        tab: Optional[str] = None,
        row: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.tab = tab
        self.row = row

    @classmethod
    def from_validation_error(
        cls,
        error: ValidationError,
        tab: Optional[str] = None,
        row: Optional[int] = None,
    ) -> "RowParseError":
        """Wrap a model validation failure on a row's draft, one clause per field."""
        problems = "; ".join(
            f"{'.'.join(str(part) for part in detail['loc']) or 'row'}: {detail['msg']}"
            for detail in error.errors()
        )
        return cls(f"Row rejected: {problems}", tab=tab, row=row)

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            tab=self.tab,
            row=self.row,
            message=self.message,
            code="row_parse_error",
        )


class UnsupportedDocumentError(IngestionError):
    """The upload boundary rejected the document type or size."""

    def __init__(
        self,
        message: str,
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ):
        super().__init__(message)
        self.mime_type = mime_type
        self.size_bytes = size_bytes


class AmbiguousInstallmentError(IngestionError):
    """Installment text is present but matches no known phrasing."""

    def __init__(self, text: str):
        super().__init__(f"Could not understand installment text: {text!r}")
        self.text = text


class DuplicateDetectedWarning(IngestionError):
    """
    Drafts match transactions already in the ledger.

    Not a failure: the caller must answer with a DuplicateDecision
    (discard, force import or cancel) before the import can proceed.
    """

    def __init__(self, duplicates: dict[int, str]):
        super().__init__(
            f"{len(duplicates)} transactions look like duplicates of existing entries"
        )
        self.duplicates = duplicates


class ExtractionFailedError(IngestionError):
    """The external extraction service failed or returned unusable data."""
    pass


class ExtractionTimeoutError(ExtractionFailedError):
    """The external extraction service did not answer in time."""
    pass
