"""Document extraction services."""

from finance_engine.services.extraction.gemini_service import (
    DocumentExtractor,
    GeminiExtractionService,
    build_extraction_prompt,
    check_document_upload,
    parse_extraction_response,
)

__all__ = [
    "DocumentExtractor",
    "GeminiExtractionService",
    "build_extraction_prompt",
    "check_document_upload",
    "parse_extraction_response",
]
