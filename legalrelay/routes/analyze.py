from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from legalrelay.analysis import DocumentAnalyzer, UploadedDocument
from legalrelay.deps import get_analyzer
from legalrelay.errors import InputValidationError
from legalrelay.schemas import AnalyzeTextRequest

router = APIRouter(prefix="/api", tags=["analyze"])

log = logging.getLogger("legalrelay.api.analyze")


def _form_str(form, name: str) -> Optional[str]:
    value = form.get(name)
    return value if isinstance(value, str) else None


async def _read_form(request: Request) -> Dict[str, Any]:
    form = await request.form()
    upload: Optional[UploadedDocument] = None
    document = form.get("document")
    if isinstance(document, UploadFile) and document.filename:
        upload = UploadedDocument(filename=document.filename, content=await document.read())
        await document.close()
    return {
        "upload": upload,
        "text": _form_str(form, "text"),
        "parties": _form_str(form, "parties"),
        "email": _form_str(form, "email"),
    }


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = AnalyzeTextRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as exc:
        raise InputValidationError(f"Invalid JSON body: {exc}") from exc
    return {
        "upload": None,
        "text": body.text,
        "parties": body.parties,
        "email": body.email,
    }


@router.post("/analyze-document")
async def analyze_document(
    request: Request,
    analyzer: DocumentAnalyzer = Depends(get_analyzer),
) -> Dict[str, Any]:
    """
    Analyze an uploaded document (multipart field ``document``) or inline
    ``text`` and return the normalized analysis.

    - Multipart and JSON bodies are both accepted.
    - Extraction and the model call run in the threadpool.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        fields = await _read_form(request)
    else:
        fields = await _read_json(request)

    return await run_in_threadpool(
        analyzer.analyze,
        upload=fields["upload"],
        text=fields["text"],
        parties=fields["parties"],
        email=fields["email"],
    )
