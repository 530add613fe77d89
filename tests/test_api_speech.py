import base64

from legalrelay.errors import ProviderCallFailure


def test_text_to_speech(client, provider):
    resp = client.post(
        "/api/text-to-speech",
        json={"text": "Hello there", "voiceName": "verse", "stylePrompt": "Speak slowly"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["mimeType"] == "audio/mpeg"
    assert base64.b64decode(body["audioData"]) == provider.audio
    assert body["metadata"]["voiceName"] == "verse"
    assert provider.speech_calls == [
        {"text": "Hello there", "voice": "verse", "instructions": "Speak slowly"}
    ]


def test_default_voice(client, provider):
    resp = client.post("/api/text-to-speech", json={"text": "Hello"})

    assert resp.status_code == 200
    assert provider.speech_calls[0]["voice"] == "alloy"


def test_text_is_required(client, provider):
    assert client.post("/api/text-to-speech", json={"text": "   "}).status_code == 400
    assert client.post("/api/text-to-speech", json={}).status_code == 400
    assert provider.speech_calls == []


def test_limit_counts_utf8_bytes(client, provider):
    # 450 characters, 900 bytes: exactly at the limit.
    assert client.post("/api/text-to-speech", json={"text": "é" * 450}).status_code == 200

    resp = client.post("/api/text-to-speech", json={"text": "é" * 451})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Text too long"
    assert len(provider.speech_calls) == 1


def test_limit_can_be_disabled(client, settings):
    settings.tts_max_bytes = None

    assert client.post("/api/text-to-speech", json={"text": "a" * 5000}).status_code == 200


def test_provider_failure(client, provider):
    provider.error = ProviderCallFailure("Failed to generate speech: quota exceeded")

    resp = client.post("/api/text-to-speech", json={"text": "Hello"})

    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to generate speech: quota exceeded"
