from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from legalrelay.config import Settings, get_settings
from legalrelay.deps import get_answerer
from legalrelay.questions import QuestionAnswerer
from legalrelay.schemas import QuestionRequest

router = APIRouter(prefix="/api", tags=["questions"])

log = logging.getLogger("legalrelay.api.questions")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/ask-question")
def ask_question(
    payload: QuestionRequest,
    answerer: QuestionAnswerer = Depends(get_answerer),
) -> Dict[str, Any]:
    """
    Answer a follow-up question about an analysis in one response.
    """
    return answerer.answer(
        payload.question,
        payload.context,
        payload.conversationHistory,
        payload.originalText,
        analysis_id=payload.analysisId,
    )


@router.post("/ask-question-stream")
async def ask_question_stream(
    payload: QuestionRequest,
    answerer: QuestionAnswerer = Depends(get_answerer),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """
    Stream the answer as Server-Sent Events.

    Input problems are reported as normal 4xx/5xx responses; after the first
    byte, errors arrive as a final ``{"error": ...}`` event instead.
    """
    if not settings.enable_streaming:
        raise HTTPException(status_code=404, detail="Streaming is disabled")

    answerer.validate(payload.question, payload.context)
    log.info("Streaming answer for analysis %s", payload.analysisId or "N/A")

    events = answerer.stream_answer(
        payload.question,
        payload.context,
        payload.conversationHistory,
        payload.originalText,
        analysis_id=payload.analysisId,
    )
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)
