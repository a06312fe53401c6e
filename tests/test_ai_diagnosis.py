"""
Tests for the AI diagnosis client and the worker steps that use it.
"""

import json

import httpx
import pytest

from core.config import settings
from models.diagnosis import Diagnosis, DiagnosisImage, DiagnosisStatus, UrgencyLevel
from services.ai_diagnosis_service import (
    AIDiagnosisService,
    AIProviderError,
    build_prompt,
    parse_ai_response,
)
from tasks.diagnosis_tasks import analyse, diagnosis_event, mark_failed

STRUCTURED_REPLY = {
    "diagnosis": "The alternator is likely failing to charge the battery.",
    "possible_causes": ["Worn alternator brushes", "Loose drive belt"],
    "recommended_actions": [{"action": "Test charging voltage", "priority": "high"}],
    "urgency_level": "HIGH",
    "confidence_score": 0.82,
    "safety_warnings": "Car may stall in traffic",
}


def _groq_transport(captured, content):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return httpx.MockTransport(handler)


def test_parse_finds_json_inside_prose() -> None:
    """Verify the first JSON object is extracted from surrounding text."""

    reply = "Here is my analysis:\n```json\n" + json.dumps(STRUCTURED_REPLY) + "\n```\nDrive safely."

    assert parse_ai_response(reply)["urgency_level"] == "HIGH"


def test_parse_keeps_unstructured_reply() -> None:
    """Verify replies without valid JSON are kept verbatim."""

    assert parse_ai_response("Check the battery terminals.") == {"raw_response": "Check the battery terminals."}
    assert parse_ai_response("{not json}") == {"raw_response": "{not json}"}


def test_apply_result_normalises_fields() -> None:
    """Verify urgency is lower-cased, confidence clamped and scalars wrapped in lists."""

    service = AIDiagnosisService(provider="groq")
    diagnosis = Diagnosis(symptoms_description="Battery light on", status=DiagnosisStatus.PROCESSING)

    service.apply_result(diagnosis, dict(STRUCTURED_REPLY, confidence_score=3.5))

    assert diagnosis.status == DiagnosisStatus.COMPLETED
    assert diagnosis.ai_urgency_level == UrgencyLevel.HIGH
    assert diagnosis.ai_confidence_score == 1.0
    assert diagnosis.ai_safety_warnings == ["Car may stall in traffic"]
    assert diagnosis.ai_provider == "groq"
    assert diagnosis.processed_at is not None


def test_apply_result_defaults_for_raw_reply() -> None:
    """Verify an unstructured reply falls back to medium urgency and default confidence."""

    service = AIDiagnosisService(provider="groq")
    diagnosis = Diagnosis(symptoms_description="Strange smell")

    service.apply_result(diagnosis, {"raw_response": "Possibly a coolant leak.", "urgency_level": "unknown"})

    assert diagnosis.ai_diagnosis == "Possibly a coolant leak."
    assert diagnosis.ai_urgency_level == UrgencyLevel.MEDIUM
    assert diagnosis.ai_confidence_score == 0.7
    assert diagnosis.ai_possible_causes == []


def test_prompt_includes_voice_and_images() -> None:
    """Verify the prompt carries the transcription and photo URLs."""

    diagnosis = Diagnosis(
        symptoms_description="Knocking from the engine",
        voice_transcription="It gets louder uphill",
        vehicle_info="Toyota Corolla 2012",
    )
    diagnosis.images = [DiagnosisImage(image_url="https://cdn.example.com/1.jpg", sort_order=0)]

    prompt = build_prompt(diagnosis)

    assert "Toyota Corolla 2012" in prompt
    assert "It gets louder uphill" in prompt
    assert "https://cdn.example.com/1.jpg" in prompt


def test_groq_request_shape() -> None:
    """Verify the chat-completions request carries the bearer key and model."""

    captured = []
    client = httpx.Client(transport=_groq_transport(captured, "ok"))

    reply = AIDiagnosisService(provider="groq", client=client).chat("Hello", system_prompt="Be brief")

    assert reply == "ok"
    request = captured[0]
    assert request.headers["Authorization"] == "Bearer test-groq-key"
    body = json.loads(request.content)
    assert body["model"] == settings.GROQ_MODEL
    assert [m["role"] for m in body["messages"]] == ["system", "user"]


def test_anthropic_request_shape(monkeypatch) -> None:
    """Verify the messages API request and reply parsing."""

    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "test-anthropic-key")
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "anthropic reply"}]})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    reply = AIDiagnosisService(provider="anthropic", client=client).chat("Hello", system_prompt="Be brief")

    assert reply == "anthropic reply"
    request = captured[0]
    assert request.headers["x-api-key"] == "test-anthropic-key"
    assert request.headers["anthropic-version"] == settings.ANTHROPIC_VERSION
    body = json.loads(request.content)
    assert body["system"] == "Be brief"
    assert body["messages"] == [{"role": "user", "content": "Hello"}]


def test_missing_key_and_provider_errors(monkeypatch) -> None:
    """Verify a missing key or an error status raises AIProviderError."""

    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    with pytest.raises(AIProviderError):
        AIDiagnosisService(provider="openai").chat("Hello")

    failing = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded")))
    with pytest.raises(AIProviderError, match="503"):
        AIDiagnosisService(provider="groq", client=failing).chat("Hello")

    with pytest.raises(ValueError):
        AIDiagnosisService(provider="gemini")


def test_analyse_stores_result(sync_db) -> None:
    """Verify the worker step completes the diagnosis with the parsed reply."""

    diagnosis = Diagnosis(symptoms_description="Battery light stays on")
    sync_db.add(diagnosis)
    sync_db.commit()
    client = httpx.Client(transport=_groq_transport([], json.dumps(STRUCTURED_REPLY)))

    analyse(sync_db, diagnosis, AIDiagnosisService(provider="groq", client=client))

    sync_db.expire_all()
    stored = sync_db.get(Diagnosis, diagnosis.id)
    assert stored.status == DiagnosisStatus.COMPLETED
    assert stored.ai_possible_causes == STRUCTURED_REPLY["possible_causes"]
    assert diagnosis_event(stored)["ai_urgency_level"] == "high"


def test_mark_failed_records_error(sync_db) -> None:
    """Verify a diagnosis that exhausted its retries is marked failed."""

    diagnosis = Diagnosis(symptoms_description="Car will not start", status=DiagnosisStatus.PROCESSING)
    sync_db.add(diagnosis)
    sync_db.commit()

    mark_failed(sync_db, diagnosis, AIProviderError("groq API error 500"))

    assert diagnosis.status == DiagnosisStatus.FAILED
    assert "groq API error 500" in diagnosis.error_message
    assert diagnosis_event(diagnosis)["status"] == "failed"
