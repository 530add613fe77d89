from __future__ import annotations

import json
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from legalrelay.config import Settings, get_settings
from legalrelay.deps import get_account_store, get_provider, get_store, get_temp_files
from legalrelay.main import app
from legalrelay.provider import LLMProvider
from legalrelay.store import UserDataStore, build_engine
from legalrelay.tempfiles import TempFileManager

CONTRACT_TEXT = (
    "This Service Agreement is made between Acme Corp and the Client. "
    "The Provider shall deliver the services described in Schedule A. "
    "Either party may terminate this agreement with thirty days notice. "
    "Fees are payable monthly and late payments accrue interest at 2 percent. "
    "The Client shall indemnify the Provider against all third party claims. "
    "This agreement is governed by the laws of the State of New York and "
    "renews automatically for successive one year terms unless cancelled."
) * 2
CONTRACT_TEXT = CONTRACT_TEXT[:500]

MODEL_ANALYSIS = {
    "summary": {
        "documentType": "Service Agreement",
        "mainPurpose": "Provision of services",
        "keyHighlights": ["Monthly fees", "Thirty day termination"],
    },
    "riskAssessment": {
        "overallRisk": "medium",
        "riskScore": 5,
        "favorable": [
            {
                "type": "Termination",
                "description": "Mutual termination right",
                "location": "Section 3",
                "recommendation": "Keep as is",
            }
        ],
        "moderate": [
            {
                "type": "Late fees",
                "description": "Interest on late payments",
                "location": "Section 4",
                "recommendation": "Negotiate a grace period",
            }
        ],
        "critical": [],
    },
    "keyTerms": [
        {
            "category": "Payment",
            "term": "Monthly fees",
            "explanation": "You pay every month",
            "importance": "High",
        }
    ],
    "recommendations": ["Ask for a grace period on late payments"],
    "flowchart": {
        "nodes": [
            {"id": "n1", "type": "start", "label": "Sign", "position": {"x": 0, "y": 0}},
            {"id": "n2", "type": "end", "label": "Terminate", "position": {"x": 400, "y": 300}},
        ],
        "edges": [{"id": "e1", "source": "n1", "target": "n2", "label": None}],
    },
}


class FakeProvider(LLMProvider):
    """
    Scripted stand-in for the OpenAI-backed provider. Records every prompt.
    """

    def __init__(
        self,
        reply: str = "",
        chunks: Optional[List[str]] = None,
        audio: bytes = b"ID3-fake-mp3",
    ):
        super().__init__(client=None, model="fake-model", tts_model="fake-tts", tts_voice="alloy")
        self.reply = reply or json.dumps(MODEL_ANALYSIS)
        self.chunks = chunks if chunks is not None else ["The notice ", "period is ", "thirty days."]
        self.audio = audio
        self.is_configured = True
        self.error: Optional[Exception] = None
        self.prompts: List[str] = []
        self.speech_calls: List[dict] = []

    @property
    def configured(self) -> bool:
        return self.is_configured

    def generate(self, prompt, max_tokens=None):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply

    def stream(self, prompt, max_tokens=None):
        self.prompts.append(prompt)
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    def synthesize_speech(self, text, voice=None, instructions=None):
        self.speech_calls.append({"text": text, "voice": voice, "instructions": instructions})
        if self.error is not None:
            raise self.error
        return self.audio


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        openai_api_key="test-key",
        temp_dir=str(tmp_path / "uploads"),
        database_url="sqlite://",
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def store():
    store = UserDataStore(build_engine("sqlite://"))
    store.create_schema()
    return store


@pytest.fixture
def temp_files(settings):
    return TempFileManager(settings.temp_dir)


@pytest.fixture
def client(settings, provider, store, temp_files):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_provider] = lambda: provider
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_account_store] = lambda: store if settings.enable_accounts else None
    app.dependency_overrides[get_temp_files] = lambda: temp_files
    yield TestClient(app)
    app.dependency_overrides.clear()


def parse_sse(body: str) -> List[dict]:
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events
