from __future__ import annotations

import datetime as dt
import json
import logging
import uuid
from typing import Any, Dict, Iterable, Iterator, List, Optional

from legalrelay.config import Settings
from legalrelay.errors import InputValidationError, ProviderConfigError, RelayError
from legalrelay.prompts import build_question_prompt
from legalrelay.provider import LLMProvider
from legalrelay.schemas import ConversationTurn

log = logging.getLogger("legalrelay.questions")


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class QuestionAnswerer:
    """
    Follow-up Q&A over a previous analysis. Holds no session state: the
    caller replays the conversation history on every request.
    """

    def __init__(self, provider: LLMProvider, settings: Settings):
        self.provider = provider
        self.settings = settings

    def validate(self, question: Optional[str], context: Any) -> None:
        """
        Fail fast, before any response bytes are sent.
        """
        if not question or not str(question).strip() or context in (None, "", {}):
            raise InputValidationError(
                "Question and analysis context are required", error="Missing input"
            )
        if not self.provider.configured:
            raise ProviderConfigError("OpenAI API key not found")

    def _metadata(self, analysis_id: Optional[str]) -> Dict[str, Any]:
        return {
            "answerId": str(uuid.uuid4()),
            "analysisId": analysis_id,
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "model": self.provider.model,
        }

    def answer(
        self,
        question: str,
        context: Any,
        history: Iterable[ConversationTurn] = (),
        original_text: Optional[str] = None,
        analysis_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.validate(question, context)
        prompt = build_question_prompt(question, context, history, original_text)
        text = self.provider.generate(prompt, max_tokens=self.settings.openai_qa_max_tokens)
        return {
            "success": True,
            "answer": text.strip(),
            "metadata": self._metadata(analysis_id),
        }

    def stream_answer(
        self,
        question: str,
        context: Any,
        history: Iterable[ConversationTurn] = (),
        original_text: Optional[str] = None,
        analysis_id: Optional[str] = None,
    ) -> Iterator[str]:
        """
        Yield SSE frames: one ``chunk`` per model increment, then one ``done``
        carrying the full text. Call ``validate`` first; once iteration starts
        every failure is reported in-band as a final ``error`` frame.
        """
        prompt = build_question_prompt(question, context, history, original_text)
        parts: List[str] = []
        try:
            for text in self.provider.stream(prompt, max_tokens=self.settings.openai_qa_max_tokens):
                parts.append(text)
                yield sse_event({"type": "chunk", "text": text})
        except RelayError as exc:
            log.error("Streaming answer failed after %d chunk(s): %s", len(parts), exc.message)
            yield sse_event({"error": exc.message})
            return
        except Exception as exc:
            # Headers are already sent; the only channel left is the stream.
            log.exception("Unexpected streaming failure")
            yield sse_event({"error": f"Streaming failed: {exc}"})
            return

        log.info("Streamed answer: %d chunk(s)", len(parts))
        yield sse_event(
            {
                "type": "done",
                "fullText": "".join(parts),
                "metadata": self._metadata(analysis_id),
            }
        )
