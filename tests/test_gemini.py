"""Tests for the extraction service boundary (no API calls)."""

import pytest
from decimal import Decimal

from finance_engine.config.settings import AppSettings
from finance_engine.exceptions import ExtractionFailedError, UnsupportedDocumentError
from finance_engine.models.transaction import ExtractionMethod
from finance_engine.services.extraction import (
    build_extraction_prompt,
    check_document_upload,
    parse_extraction_response,
)


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        max_upload_size_mb=1,
        supported_document_types="application/pdf,image/jpeg,image/png",
    )


class TestDocumentUpload:
    """Tests for the upload boundary."""

    def test_accepted(self, app_settings):
        """Supported types under the limit pass, case-insensitively."""
        check_document_upload("Application/PDF", 2048, app_settings)

    def test_unsupported_type(self, app_settings):
        """Other MIME types are rejected."""
        with pytest.raises(UnsupportedDocumentError, match="Unsupported document type"):
            check_document_upload("text/html", 2048, app_settings)

    def test_empty(self, app_settings):
        """Empty uploads are rejected."""
        with pytest.raises(UnsupportedDocumentError, match="empty"):
            check_document_upload("image/png", 0, app_settings)

    def test_too_large(self, app_settings):
        """Uploads above the limit are rejected."""
        with pytest.raises(UnsupportedDocumentError, match="limit is 1 MB"):
            check_document_upload("image/png", 1024 * 1024 + 1, app_settings)


class TestParseExtractionResponse:
    """Tests for response validation."""

    def test_fenced_json(self):
        """Markdown fences and prose around the object are tolerated."""
        text = 'Here you go:\n```json\n{"merchant": "Loja", "date": "10/03/2025", "amount": 12.5, "confidence": 0.9}\n```'

        result = parse_extraction_response(text)

        assert result.merchant == "Loja"
        assert result.amount == Decimal("12.5")
        assert result.extraction_method == ExtractionMethod.AI

    def test_statement(self):
        """Statements keep their lines and metadata."""
        text = (
            '{"isMultiTransaction": true, "confidence": 0.8,'
            ' "statementInfo": {"institution": "Nubank", "dueDate": "07/04/2025"},'
            ' "transactions": [{"merchant": "Mercado", "amount": 150}]}'
        )
        result = parse_extraction_response(text)
        assert result.is_multi_transaction
        assert result.statement_info.due_date == "07/04/2025"
        assert len(result.transactions) == 1

    def test_no_json(self):
        """Answers without an object fail."""
        with pytest.raises(ExtractionFailedError, match="no JSON object"):
            parse_extraction_response("I could not read this image")

    def test_invalid_json(self):
        """Broken JSON fails."""
        with pytest.raises(ExtractionFailedError, match="not valid JSON"):
            parse_extraction_response('{"merchant": "Loja",}')

    def test_contract_mismatch(self):
        """Values outside the contract fail instead of being guessed."""
        with pytest.raises(ExtractionFailedError, match="does not match contract"):
            parse_extraction_response('{"amount": "lots", "confidence": 0.9}')


class TestPrompt:
    """Tests for the extraction prompt."""

    def test_categories_listed(self):
        """Available categories are offered to the model."""
        prompt = build_extraction_prompt(["Alimentação", "Transporte"])
        assert "Available categories: Alimentação, Transporte" in prompt

    def test_without_categories(self):
        """No categories line without categories."""
        assert "Available categories" not in build_extraction_prompt()
