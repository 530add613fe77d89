"""
Document analysis pipeline.

Received -> SourceResolved -> Validated -> Authenticated (optional) ->
Extracted -> Analyzed -> Responded. An uploaded file only exists on disk
inside ``TempFileManager.hold``, so it is removed on every exit path.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from legalrelay.config import Settings
from legalrelay.errors import (
    AccountError,
    InputValidationError,
    ProviderConfigError,
    StoreFailure,
)
from legalrelay.extractor import extract_text
from legalrelay.normalizer import normalize
from legalrelay.prompts import build_analysis_prompt
from legalrelay.provider import LLMProvider
from legalrelay.store import UserDataStore
from legalrelay.tempfiles import TempFileManager

log = logging.getLogger("legalrelay.analysis")


@dataclass
class UploadedDocument:
    filename: str
    content: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


def parse_parties(raw: Any) -> Dict[str, Any]:
    """
    Accept parties as a mapping or a JSON-encoded string. Anything unusable is
    logged and treated as "no parties" rather than failing the request. A
    usable mapping is returned as received, null names included.
    """
    if raw is None or raw == "":
        return {}
    parsed = raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            log.warning("Failed to parse parties data: %s", exc)
            return {}
    if not isinstance(parsed, dict):
        log.warning("Ignoring parties of type %s", type(parsed).__name__)
        return {}
    return dict(parsed)


class DocumentAnalyzer:
    def __init__(
        self,
        provider: LLMProvider,
        settings: Settings,
        temp_files: TempFileManager,
        store: Optional[UserDataStore] = None,
    ):
        self.provider = provider
        self.settings = settings
        self.temp_files = temp_files
        self.store = store

    # --------------------------------------------------------------------------
    # Steps
    # --------------------------------------------------------------------------

    def _check_upload(self, upload: UploadedDocument) -> None:
        if upload.extension not in self.settings.allowed_extensions:
            raise InputValidationError(
                "Only PDF, DOC, DOCX, and TXT files are allowed.",
                error="Unsupported file type",
            )
        if len(upload.content) > self.settings.max_upload_bytes:
            limit_mb = self.settings.max_upload_bytes // (1024 * 1024)
            raise InputValidationError(
                f"File size must be less than {limit_mb}MB",
                error="File too large",
            )

    def _read_upload(self, upload: UploadedDocument) -> str:
        self._check_upload(upload)
        log.info("Processing file: %s", upload.filename)
        with self.temp_files.hold(upload.content, upload.extension) as path:
            return extract_text(path, upload.extension)

    def _check_length(self, text: str) -> None:
        if len(text) < self.settings.min_document_chars:
            raise InputValidationError(
                "Document content is too short for meaningful analysis "
                f"(minimum {self.settings.min_document_chars} characters)",
                error="Document too short",
            )
        if len(text) > self.settings.max_document_chars:
            raise InputValidationError(
                "Document content is too long "
                f"(maximum {self.settings.max_document_chars:,} characters)",
                error="Document too long",
            )

    def _lookup_account(self, email: Optional[str]) -> Dict[str, Any]:
        if not email or not email.strip():
            raise InputValidationError("Email is required", error="Missing email")
        email = email.strip()

        info: Dict[str, Any] = {
            "email": email,
            "recognized": False,
            "recordCount": 0,
            "latestSerial": None,
        }
        if self.store is None:
            return info
        try:
            latest = self.store.latest(email)
            count = self.store.count(email) if latest else 0
        except StoreFailure:
            if self.settings.require_registered_email:
                raise
            log.exception("Account lookup failed; continuing without it")
            return info

        info.update(
            recognized=latest is not None,
            recordCount=count,
            latestSerial=latest["serial"] if latest else None,
        )
        if self.settings.require_registered_email and not info["recognized"]:
            raise AccountError("No account found for this email")
        return info

    # --------------------------------------------------------------------------
    # Public API
    # --------------------------------------------------------------------------

    def analyze(
        self,
        *,
        upload: Optional[UploadedDocument] = None,
        text: Optional[str] = None,
        parties: Any = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        has_file = upload is not None
        has_text = bool(text)
        if not has_file and not has_text:
            raise InputValidationError("No document or text provided", error="Missing input")
        if has_file and has_text:
            raise InputValidationError(
                "Provide either a document or text, not both", error="Ambiguous input"
            )

        if has_file:
            source = "file"
            document_text = self._read_upload(upload)
        else:
            source = "text"
            log.info("Processing direct text input")
            document_text = text

        self._check_length(document_text)

        user_info = None
        if self.settings.enable_accounts:
            user_info = self._lookup_account(email)

        parsed_parties = parse_parties(parties)

        if not self.provider.configured:
            raise ProviderConfigError("OpenAI API key not found")

        log.info("Starting AI analysis (%d chars, source=%s)", len(document_text), source)
        raw = self.provider.generate(build_analysis_prompt(document_text, parsed_parties))
        analysis = normalize(raw, parsed_parties, document_text, self.provider.model)
        log.info("Analysis completed: %s", analysis["metadata"]["analysisId"])

        response: Dict[str, Any] = {
            "success": True,
            "analysis": analysis,
            "originalText": document_text,
            "metadata": {
                "source": source,
                "originalFilename": upload.filename if has_file else None,
                "processedAt": dt.datetime.now(dt.timezone.utc).isoformat(),
                "contentLength": len(document_text),
                "model": self.provider.model,
            },
        }
        if user_info is not None:
            response["userInfo"] = user_info
        return response
