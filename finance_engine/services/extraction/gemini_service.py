"""
Document Extraction Service (Gemini)

DESIGN DECISION: The multimodal model is a TRANSLATOR, not an ORACLE.
It turns a receipt or card statement into the raw extraction contract
(`ExtractionResult`) and nothing else. Every decision taken afterwards
(payment exclusion, refunds, installments, duplicates) is deterministic
and lives in the parsers and reconciliation packages.

CRITICAL BOUNDARIES:
- The upload boundary (type and size) is checked before any call is made
- Responses are validated against `ExtractionResult`; anything that does
  not fit the contract is an `ExtractionFailedError`, never a guess
- Dates and installment text stay raw strings here; normalization happens
  in `finance_engine.parsers.extraction`
"""

import json
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_engine.config import get_settings
from finance_engine.config.settings import AppSettings, GeminiSettings
from finance_engine.exceptions import ExtractionFailedError, UnsupportedDocumentError
from finance_engine.models.transaction import ExtractionMethod, ExtractionResult


logger = structlog.get_logger(__name__)


def check_document_upload(
    mime_type: str,
    size_bytes: int,
    app_settings: Optional[AppSettings] = None,
) -> None:
    """
    Reject documents outside the accepted types or above the size limit.

    Raises:
        UnsupportedDocumentError: If the type or size is not accepted
    """
    app_settings = app_settings or get_settings().app
    normalized = (mime_type or "").strip().lower()

    if normalized not in app_settings.supported_types_list:
        raise UnsupportedDocumentError(
            f"Unsupported document type: {mime_type or 'unknown'}. "
            f"Accepted: {', '.join(app_settings.supported_types_list)}",
            mime_type=mime_type,
            size_bytes=size_bytes,
        )
    if size_bytes <= 0:
        raise UnsupportedDocumentError(
            "Document is empty",
            mime_type=mime_type,
            size_bytes=size_bytes,
        )
    if size_bytes > app_settings.max_upload_size_bytes:
        raise UnsupportedDocumentError(
            f"Document is {size_bytes} bytes, limit is "
            f"{app_settings.max_upload_size_mb} MB",
            mime_type=mime_type,
            size_bytes=size_bytes,
        )


def build_extraction_prompt(categories: Sequence[str] = ()) -> str:
    """Prompt asking for a single receipt or a full card statement as JSON."""
    categories_line = ""
    if categories:
        categories_line = f"\nAvailable categories: {', '.join(categories)}\n"

    return f"""You extract financial data from Brazilian receipts, invoices and credit card statements.
{categories_line}
Analyse the image or PDF and answer with ONE JSON object.

For a single receipt or invoice:
{{
  "merchant": "store name",
  "date": "DD/MM/YYYY",
  "amount": 1200.50,
  "category": "category",
  "items": [{{"description": "item", "quantity": 1, "unitPrice": 10.0, "totalPrice": 10.0}}],
  "confidence": 0.0 to 1.0,
  "isMultiTransaction": false
}}

For a credit card statement:
{{
  "isMultiTransaction": true,
  "confidence": 0.0 to 1.0,
  "statementInfo": {{
    "institution": "issuing bank", "cardLastDigits": "1234", "dueDate": "DD/MM/YYYY",
    "totalAmount": 0.0, "holderName": "name on the card"
  }},
  "transactions": [
    {{"merchant": "store", "date": "DD/MM/YYYY", "amount": 99.90, "category": "category",
      "description": "line as printed", "installmentInfo": "03/10", "isRefund": false}}
  ]
}}

RULES:
1. Amounts are plain numbers: "R$ 1.200,50" becomes 1200.50
2. Credits, refunds and chargebacks are negative amounts with "isRefund": true
3. Copy installment text exactly as printed ("03/10", "Parcela 3 de 10")
4. Keep statement payment lines; do not drop any line
5. Use null for fields you cannot find
6. Pick a category from the available ones when one fits
7. Return ONLY the JSON, no extra text"""


def parse_extraction_response(text: str) -> ExtractionResult:
    """
    Validate the model's answer against the extraction contract.

    The JSON object is located between the first "{" and the last "}",
    which tolerates markdown fences and stray prose around it.

    Raises:
        ExtractionFailedError: If no valid extraction can be read
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ExtractionFailedError("Extraction response contained no JSON object")

    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ExtractionFailedError(f"Extraction response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ExtractionFailedError("Extraction response is not a JSON object")

    data.setdefault("extractionMethod", ExtractionMethod.AI.value)
    try:
        return ExtractionResult.model_validate(data)
    except ValidationError as e:
        raise ExtractionFailedError(f"Extraction response does not match contract: {e}") from e


class DocumentExtractor(ABC):
    """Anything that turns document bytes into an ExtractionResult."""

    @abstractmethod
    async def extract(
        self,
        content: bytes,
        mime_type: str,
        categories: Sequence[str] = (),
    ) -> ExtractionResult:
        """
        Raises:
            ExtractionFailedError: If the document could not be read
        """
        pass


class GeminiExtractionService(DocumentExtractor):
    """
    Gemini-backed extractor.

    Transient API failures are retried with exponential backoff; the
    overall time limit is enforced by the caller.
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, prompt: str, content: bytes, mime_type: str) -> str:
        response = await self._model.generate_content_async(
            [prompt, {"mime_type": mime_type, "data": content}]
        )
        return response.text.strip()

    async def extract(
        self,
        content: bytes,
        mime_type: str,
        categories: Sequence[str] = (),
    ) -> ExtractionResult:
        prompt = build_extraction_prompt(categories)
        try:
            text = await self._generate(prompt, content, mime_type)
        except Exception as e:
            logger.error("gemini_request_failed", model=self._settings.model_name, error=str(e))
            raise ExtractionFailedError(f"Gemini request failed: {e}") from e

        result = parse_extraction_response(text)
        logger.info(
            "gemini_extraction_completed",
            model=self._settings.model_name,
            multi=result.is_multi_transaction,
            lines=len(result.transactions),
            confidence=result.confidence,
        )
        return result
