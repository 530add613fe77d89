from __future__ import annotations

import base64
import datetime as dt
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from legalrelay.config import Settings, get_settings
from legalrelay.deps import get_provider
from legalrelay.errors import InputValidationError
from legalrelay.provider import LLMProvider
from legalrelay.schemas import SpeechRequest

router = APIRouter(prefix="/api", tags=["speech"])

log = logging.getLogger("legalrelay.api.speech")

AUDIO_MIME_TYPE = "audio/mpeg"


@router.post("/text-to-speech")
def text_to_speech(
    payload: SpeechRequest,
    provider: LLMProvider = Depends(get_provider),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Convert text to speech and return it base64-encoded.

    The byte limit is on the UTF-8 encoding of ``text``, not its length in
    characters.
    """
    text = (payload.text or "").strip()
    if not text:
        raise InputValidationError("Text is required for speech synthesis", error="Missing text")

    size = len(text.encode("utf-8"))
    limit = settings.tts_max_bytes
    if limit is not None and size > limit:
        raise InputValidationError(
            f"Text is too long for speech synthesis ({size} bytes, maximum {limit})",
            error="Text too long",
        )

    voice = payload.voiceName or provider.tts_voice
    audio = provider.synthesize_speech(text, voice=voice, instructions=payload.stylePrompt)
    log.info("Synthesized speech: voice=%s input_bytes=%d audio_bytes=%d", voice, size, len(audio))

    return {
        "success": True,
        "audioData": base64.b64encode(audio).decode("ascii"),
        "mimeType": AUDIO_MIME_TYPE,
        "metadata": {
            "voiceName": voice,
            "model": provider.tts_model,
            "textBytes": size,
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
        },
    }
