from __future__ import annotations

import logging
from typing import Iterator, Optional

import httpx
from openai import OpenAI, OpenAIError

from legalrelay.config import Settings
from legalrelay.errors import ProviderCallFailure, ProviderConfigError

log = logging.getLogger("legalrelay.provider")

SYSTEM_PROMPT = "You are an expert legal AI assistant."


class LLMProvider:
    """
    Thin wrapper over the OpenAI SDK for the three calls the relay makes:
    single-shot completion, streamed completion and speech synthesis.

    ``client`` is None when no API key is configured; every call then raises
    ProviderConfigError instead of reaching the network.
    """

    def __init__(
        self,
        client: Optional[OpenAI],
        model: str,
        tts_model: str,
        tts_voice: str,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ):
        self.client = client
        self.model = model
        self.tts_model = tts_model
        self.tts_voice = tts_voice
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _require_client(self) -> OpenAI:
        if self.client is None:
            raise ProviderConfigError("OpenAI API key not found")
        return self.client

    def _messages(self, prompt: str):
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    def generate(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        client = self._require_client()
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                temperature=self.temperature,
                max_tokens=max_tokens or self.max_tokens,
            )
        except OpenAIError as exc:
            log.error("OpenAI completion failed: %s", exc)
            raise ProviderCallFailure(f"Failed to analyze document with AI: {exc}") from exc

        tokens = (resp.usage and resp.usage.total_tokens) or 0
        log.info("OpenAI completion: model=%s tokens=%d", self.model, tokens)
        return resp.choices[0].message.content or ""

    def stream(self, prompt: str, max_tokens: Optional[int] = None) -> Iterator[str]:
        """
        Yield text increments as the model produces them.
        """
        client = self._require_client()
        try:
            chunks = client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                temperature=self.temperature,
                max_tokens=max_tokens or self.max_tokens,
                stream=True,
            )
            for chunk in chunks:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except OpenAIError as exc:
            log.error("OpenAI stream failed: %s", exc)
            raise ProviderCallFailure(f"AI streaming failed: {exc}") from exc

    def synthesize_speech(
        self,
        text: str,
        voice: Optional[str] = None,
        instructions: Optional[str] = None,
    ) -> bytes:
        client = self._require_client()
        extra = {"instructions": instructions} if instructions else {}
        try:
            resp = client.audio.speech.create(
                model=self.tts_model,
                voice=voice or self.tts_voice,
                input=text,
                response_format="mp3",
                **extra,
            )
        except OpenAIError as exc:
            log.error("OpenAI speech synthesis failed: %s", exc)
            raise ProviderCallFailure(f"Failed to generate speech: {exc}") from exc
        return resp.content


def build_provider(settings: Settings) -> LLMProvider:
    client = None
    if settings.openai_api_key:
        client = OpenAI(
            api_key=settings.openai_api_key,
            timeout=httpx.Timeout(settings.openai_timeout_seconds, connect=5.0),
        )
    else:
        log.warning("OPENAI_API_KEY is not set; AI endpoints will return 500")
    return LLMProvider(
        client=client,
        model=settings.openai_model,
        tts_model=settings.openai_tts_model,
        tts_voice=settings.openai_tts_voice,
        temperature=settings.openai_temperature,
        max_tokens=settings.openai_max_tokens,
    )
