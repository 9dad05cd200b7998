"""
Import Orchestrator

This module ties the engine together and defines the end-to-end import
flow:

    raw input -> parser / normalizer -> drafts -> duplicate scan (preview)
    -> caller decision -> account resolution -> installment expansion
    -> one atomic batch write (commit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is persisted until `commit` is called with the caller's decision
- Duplicates are a decision point, never silently dropped or imported
- The existing-ledger snapshot is fetched once per preview and only read
- The batch write is the only write; it succeeds whole or not at all
- Every step is audited under the import's correlation id
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union
from uuid import UUID, uuid4

import structlog

from finance_engine.analysis import FinancialSummary, summarize
from finance_engine.audit import AuditLogger, create_correlation_id
from finance_engine.config import get_settings
from finance_engine.config.settings import AppSettings, MatchingSettings
from finance_engine.exceptions import (
    DuplicateDetectedWarning,
    ExtractionFailedError,
    ExtractionTimeoutError,
    UnsupportedDocumentError,
)
from finance_engine.models.transaction import (
    Account,
    AccountProposal,
    Diagnostic,
    DraftTransaction,
    DuplicateDecision,
    ExistingTransaction,
    ExtractionResult,
    ImportPreview,
    ImportReport,
    ImportSource,
    ImportSummary,
    StatementInfo,
    TransactionFilters,
    normalize_card_digits,
)
from finance_engine.parsers import normalize_extraction, parse_flat_file, parse_ledger_sheet
from finance_engine.reconciliation import (
    expand_installments,
    find_candidate_matches,
    find_duplicates,
    propose_account,
    resolve_account,
)
from finance_engine.reconciliation.duplicates import snapshot_bounds
from finance_engine.services.extraction import (
    DocumentExtractor,
    GeminiExtractionService,
    check_document_upload,
)
from finance_engine.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    PersistenceError,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

DEFAULT_EXTRACTION_TIMEOUT = 30.0


class ImportFlow:
    """
    Orchestrates previews and commits of ledger, flat file and document imports.

    Flow:
    1. Preview -> parse the input, summarize it, scan for duplicates
    2. Review -> the caller shows drafts, diagnostics and duplicates
    3. Commit -> apply the duplicate decision, attach accounts, expand
       installments, write one batch
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        extractor: Optional[DocumentExtractor] = None,
        audit_logger: Optional[AuditLogger] = None,
        dashboard_id: Optional[str] = None,
        app_settings: Optional[AppSettings] = None,
        matching_settings: Optional[MatchingSettings] = None,
        extraction_timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
    ):
        self._storage = storage
        self._extractor = extractor
        self._audit_logger = audit_logger or AuditLogger()
        self._dashboard_id = dashboard_id
        self._app = app_settings or AppSettings()
        self._matching = matching_settings or MatchingSettings()
        self._extraction_timeout = extraction_timeout

    # =========================================================================
    # PREVIEW
    # =========================================================================

    async def preview_ledger_sheet(
        self,
        content: bytes,
        year: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportPreview:
        """Parse a monthly ledger workbook and scan it for duplicates."""
        result = parse_ledger_sheet(
            content,
            year=year,
            header_row=self._app.ledger_header_row,
            max_column=self._app.ledger_max_column,
            locale=self._app.month_locale,
        )
        preview = await self._build_preview(
            ImportSource.LEDGER_SHEET,
            result.transactions,
            result.errors,
            correlation_id,
            summary=result.summary,
        )
        preview.recurring = result.recurring
        return preview

    async def preview_flat_file(
        self,
        content: Union[bytes, str],
        delimiter: Optional[str] = None,
        has_header: bool = True,
        sniff: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> ImportPreview:
        """
        Parse a delimited file and scan it for duplicates.

        Args:
            delimiter: single character; defaults to the configured delimiter
            sniff: detect ',' or ';' from the header line instead
        """
        if sniff:
            delimiter = None
        elif delimiter is None:
            delimiter = self._app.flat_file_delimiter
        result = parse_flat_file(content, delimiter=delimiter, has_header=has_header)
        return await self._build_preview(
            ImportSource.FLAT_FILE,
            result.transactions,
            result.errors,
            correlation_id,
            summary=result.summary,
        )

    async def extract_document(
        self,
        content: bytes,
        mime_type: str,
        categories: Sequence[str] = (),
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Run the external extraction, bounded by the configured timeout.

        Raises:
            UnsupportedDocumentError: If the upload boundary rejects the file
            ExtractionTimeoutError: If the extractor does not answer in time
            ExtractionFailedError: If extraction fails for any other reason
        """
        correlation_id = correlation_id or create_correlation_id()
        document_id = uuid4()

        try:
            check_document_upload(mime_type, len(content), self._app)
        except UnsupportedDocumentError as e:
            await self._audit_logger.log_document_rejected(
                document_id=document_id,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_document_received(
            document_id=document_id,
            mime_type=mime_type,
            size_bytes=len(content),
            correlation_id=correlation_id,
        )

        if self._extractor is None:
            raise ExtractionFailedError("No document extractor is configured")

        try:
            result = await asyncio.wait_for(
                self._extractor.extract(content, mime_type, categories),
                timeout=self._extraction_timeout,
            )
        except asyncio.TimeoutError:
            message = f"Extraction did not finish within {self._extraction_timeout:g}s"
            await self._audit_logger.log_extraction_failed(
                document_id=document_id,
                error_message=message,
                correlation_id=correlation_id,
            )
            raise ExtractionTimeoutError(message)
        except ExtractionFailedError as e:
            await self._audit_logger.log_extraction_failed(
                document_id=document_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except Exception as e:
            await self._audit_logger.log_external_service_error(
                service="extraction",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise ExtractionFailedError(f"Extraction failed: {e}") from e

        await self._audit_logger.log_extraction_completed(
            document_id=document_id,
            method=result.extraction_method.value,
            confidence=result.confidence,
            line_count=len(result.transactions) if result.is_multi_transaction else 1,
            correlation_id=correlation_id,
        )
        return result

    async def preview_document(
        self,
        content: bytes,
        mime_type: str,
        categories: Sequence[str] = (),
        include_payment_indices: Iterable[int] = (),
        correlation_id: Optional[UUID] = None,
    ) -> ImportPreview:
        """Extract a receipt or statement and preview its drafts."""
        correlation_id = correlation_id or create_correlation_id()
        result = await self.extract_document(content, mime_type, categories, correlation_id)
        return await self.preview_extraction(result, include_payment_indices, correlation_id)

    async def preview_extraction(
        self,
        result: ExtractionResult,
        include_payment_indices: Iterable[int] = (),
        correlation_id: Optional[UUID] = None,
    ) -> ImportPreview:
        """
        Preview an extraction result already in hand.

        Call again with `include_payment_indices` to re-include statement
        lines the user confirmed are not card payments.
        """
        normalized = normalize_extraction(
            result,
            include_payment_indices=include_payment_indices,
            min_confidence=self._app.min_extraction_confidence,
        )
        preview = await self._build_preview(
            ImportSource.DOCUMENT,
            normalized.transactions,
            normalized.errors,
            correlation_id,
        )
        preview.skipped_payments = normalized.skipped_payments
        preview.statement = normalized.statement
        preview.statement_due_date = normalized.statement_due_date
        preview.selected_total = normalized.selected_total
        return preview

    async def _snapshot(
        self,
        drafts: Sequence[DraftTransaction],
        installment_groups: bool = False,
    ) -> list[ExistingTransaction]:
        """Existing transactions of every month the drafts, and their installment plans, touch."""
        start, end = snapshot_bounds(drafts, installment_groups)
        return await self._storage.find_many(TransactionFilters(
            dashboard_id=self._dashboard_id,
            date_from=start,
            date_to=end,
        ))

    async def _build_preview(
        self,
        source: ImportSource,
        drafts: list[DraftTransaction],
        errors: list[Diagnostic],
        correlation_id: Optional[UUID],
        summary: Optional[ImportSummary] = None,
    ) -> ImportPreview:
        preview = ImportPreview(
            source=source,
            correlation_id=correlation_id or create_correlation_id(),
            transactions=drafts,
            errors=errors,
            summary=summary or ImportSummary.from_transactions(drafts),
        )

        if drafts:
            # Document drafts are expanded on commit, so stored groups count too
            installment_groups = source == ImportSource.DOCUMENT
            existing = await self._snapshot(drafts, installment_groups)
            duplicates = find_duplicates(
                drafts,
                existing,
                threshold=self._matching.strict_similarity,
                tolerance=Decimal(str(self._matching.amount_tolerance)),
                min_word_length=self._matching.min_word_length,
                installment_groups=installment_groups,
            )
            preview.duplicates = {index: tx.id for index, tx in duplicates.items()}

        await self._audit_logger.log_parse_completed(
            preview_id=preview.preview_id,
            source=source.value,
            transaction_count=len(drafts),
            diagnostic_count=len(errors),
            correlation_id=preview.correlation_id,
        )
        if preview.duplicates:
            await self._audit_logger.log_duplicates_detected(
                preview_id=preview.preview_id,
                duplicates=preview.duplicates,
                correlation_id=preview.correlation_id,
            )
        return preview

    # =========================================================================
    # COMMIT
    # =========================================================================

    async def commit(
        self,
        preview: ImportPreview,
        decision: Optional[DuplicateDecision] = None,
    ) -> ImportReport:
        """
        Persist a reviewed preview.

        CRITICAL: This is called ONLY after the user reviewed the preview.

        Args:
            preview: the preview returned by one of the preview methods
            decision: answer to the duplicate warning; required when the
                      preview has duplicates

        Returns:
            ImportReport with counts, diagnostics and account proposals

        Raises:
            DuplicateDetectedWarning: If duplicates exist and no decision was given
            PersistenceError: If the batch could not be written (nothing was)
        """
        correlation_id = preview.correlation_id
        report = ImportReport(
            skipped_as_payment=len(preview.skipped_payments),
            errors=list(preview.errors),
        )

        if decision == DuplicateDecision.CANCEL:
            await self._audit_logger.log_import_cancelled(
                preview_id=preview.preview_id,
                correlation_id=correlation_id,
            )
            report.cancelled = True
            return report

        drafts = list(preview.transactions)
        if preview.duplicates:
            if decision is None:
                raise DuplicateDetectedWarning(preview.duplicates)
            if decision == DuplicateDecision.DISCARD:
                drafts = [d for i, d in enumerate(drafts) if i not in preview.duplicates]
                report.skipped_as_duplicate = len(preview.duplicates)

        report.flagged_as_refund = sum(1 for d in drafts if d.is_refund)

        accounts = await self._storage.find_accounts(self._dashboard_id)
        proposals: dict[str, AccountProposal] = {}
        batch: list[DraftTransaction] = []
        for draft in drafts:
            draft, account = self._attach_account(draft, accounts, preview.statement, proposals)
            if preview.source == ImportSource.DOCUMENT:
                batch.extend(expand_installments(draft, account, preview.statement_due_date))
            else:
                batch.append(draft)
        report.account_proposals = list(proposals.values())

        for proposal in report.account_proposals:
            await self._audit_logger.log_account_proposed(
                name=proposal.name,
                account_type=proposal.type.value,
                correlation_id=correlation_id,
            )

        if batch:
            try:
                report.imported = await self._storage.create_many(batch, self._dashboard_id)
            except StorageError as e:
                await self._audit_logger.log_persistence_failed(
                    preview_id=preview.preview_id,
                    batch_size=len(batch),
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                if isinstance(e, PersistenceError):
                    raise
                raise PersistenceError(str(e)) from e

        report.group_ids = list(dict.fromkeys(d.group_id for d in batch if d.group_id))

        await self._audit_logger.log_import_committed(
            preview_id=preview.preview_id,
            counts={
                "imported": report.imported,
                "skipped_as_payment": report.skipped_as_payment,
                "skipped_as_duplicate": report.skipped_as_duplicate,
                "flagged_as_refund": report.flagged_as_refund,
                "diagnostics": len(report.errors),
            },
            decision=decision.value if decision else None,
            correlation_id=correlation_id,
        )
        return report

    def _attach_account(
        self,
        draft: DraftTransaction,
        accounts: Sequence[Account],
        statement: Optional[StatementInfo],
        proposals: dict[str, AccountProposal],
    ) -> tuple[DraftTransaction, Optional[Account]]:
        """Link the draft to its account, or record an account proposal."""
        if draft.account_id:
            linked = next((a for a in accounts if a.id == draft.account_id), None)
            return draft, linked

        digits = draft.card_last_digits
        institution = draft.institution
        holder = None
        if statement is not None:
            digits = digits or normalize_card_digits(statement.card_last_digits)
            institution = institution or statement.institution
            holder = statement.holder_name

        account = resolve_account(accounts, digits, institution)
        if account is not None:
            return draft.model_copy(update={"account_id": account.id}), account

        proposal = propose_account(digits, institution, holder)
        if proposal is not None:
            proposals.setdefault(proposal.name, proposal)
        return draft, None

    # =========================================================================
    # ACCOUNTS, MERGE CANDIDATES AND SUMMARIES
    # =========================================================================

    async def create_proposed_account(
        self,
        proposal: AccountProposal,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """Create an account the user accepted from an import report."""
        account = await self._storage.create_account(proposal, self._dashboard_id)
        await self._audit_logger.log_account_created(
            account_id=account.id,
            name=account.name,
            correlation_id=correlation_id,
        )
        return account

    async def find_merge_candidates(
        self,
        draft: DraftTransaction,
    ) -> list[ExistingTransaction]:
        """Existing transactions an invoice draft could be merged into."""
        window = timedelta(days=self._matching.loose_window_days)
        existing = await self._storage.find_many(TransactionFilters(
            dashboard_id=self._dashboard_id,
            date_from=draft.date - window,
            date_to=draft.date + window,
        ))
        return find_candidate_matches(
            draft,
            existing,
            threshold=self._matching.loose_similarity,
            tolerance=Decimal(str(self._matching.amount_tolerance)),
            window_days=self._matching.loose_window_days,
            min_word_length=self._matching.min_word_length,
        )

    async def summarize(self, start: date, end: date) -> FinancialSummary:
        """
        Summarize [start, end] and compare it with the window of equal
        length that ends the day before `start`.
        """
        previous_end = start - timedelta(days=1)
        previous_start = previous_end - (end - start)

        current = await self._storage.find_many(TransactionFilters(
            dashboard_id=self._dashboard_id, date_from=start, date_to=end,
        ))
        previous = await self._storage.find_many(TransactionFilters(
            dashboard_id=self._dashboard_id, date_from=previous_start, date_to=previous_end,
        ))
        return summarize(
            current,
            start=start,
            end=end,
            previous=previous,
            z_threshold=self._app.anomaly_z_threshold,
            max_anomalies=self._app.anomaly_max_results,
        )


def create_app_components(
    use_storage: bool = True,
    dashboard_id: Optional[str] = None,
) -> tuple[ImportFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create the import flow with its collaborators.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run against in-memory storage.
        dashboard_id: ledger the flow reads and writes

    Returns:
        (import_flow, sheets_client)
    """
    settings = get_settings()
    sheets_client = None
    storage: TransactionStorageInterface = InMemoryTransactionStorage()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsTransactionStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    extractor = None
    extraction_timeout = DEFAULT_EXTRACTION_TIMEOUT
    try:
        gemini = settings.gemini
        extractor = GeminiExtractionService(gemini)
        extraction_timeout = gemini.request_timeout_seconds
    except Exception as e:
        logger.warning("extractor_not_configured", error=str(e))

    flow = ImportFlow(
        storage=storage,
        extractor=extractor,
        audit_logger=audit_logger,
        dashboard_id=dashboard_id,
        app_settings=settings.app,
        matching_settings=settings.matching,
        extraction_timeout=extraction_timeout,
    )
    return flow, sheets_client
