"""
AI diagnosis client.

Groq and OpenAI share the chat-completions wire format; Anthropic uses the
messages API. The reply is expected to contain one JSON object; anything
else is kept verbatim under ``raw_response``.
"""

import json
import re
from typing import Any, Dict, List, Optional

import httpx

from core.config import settings
from core.logging import get_logger
from models.diagnosis import Diagnosis, DiagnosisStatus, UrgencyLevel
from services.helpers import utcnow

logger = get_logger(__name__)

SUPPORTED_PROVIDERS = ("groq", "openai", "anthropic")
DEFAULT_URGENCY = UrgencyLevel.MEDIUM
DEFAULT_CONFIDENCE = 0.7

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

PROMPT_TEMPLATE = """You are an expert automotive mechanic and diagnostic specialist. Analyze the following vehicle symptoms and provide a detailed diagnosis.

{vehicle_info}
Reported Symptoms:
{symptoms}
{images}
Please provide your diagnosis in the following JSON format:
{{
    "diagnosis": "A clear, concise summary of the likely issue (2-3 sentences)",
    "possible_causes": ["Most likely cause first", "Include 3-5 causes"],
    "recommended_actions": [
        {{
            "action": "Specific action to take",
            "priority": "high/medium/low",
            "estimated_cost_range": "GHS X - GHS Y (if applicable)"
        }}
    ],
    "urgency_level": "critical/high/medium/low",
    "confidence_score": 0.0 to 1.0,
    "safety_warnings": ["Any immediate safety concerns"],
    "additional_info": "Any other relevant information for the driver"
}}

Important guidelines:
- Be specific about potential issues based on the vehicle make/model if provided
- Consider common issues for vehicles in Ghana (dust, heat, road conditions)
- Provide cost estimates in Ghana Cedis (GHS) where applicable
- If the symptoms suggest a critical safety issue, clearly indicate this
"""


class AIProviderError(Exception):
    """The provider could not be reached or answered with an error."""


def parse_ai_response(content: str) -> Dict[str, Any]:
    """Extract the first JSON object from a model reply."""
    match = _JSON_OBJECT.search(content or "")
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
    return {"raw_response": content}


def build_prompt(diagnosis: Diagnosis) -> str:
    vehicle_info = ""
    vehicle = diagnosis.vehicle
    if vehicle is not None:
        vehicle_info = (
            "Vehicle Information:\n"
            f"- Make: {vehicle.make_name or 'Unknown'}\n"
            f"- Model: {vehicle.model_name or 'Unknown'}\n"
            f"- Year: {vehicle.year or 'Unknown'}\n"
            f"- Mileage: {vehicle.mileage or 'Unknown'} {vehicle.mileage_unit.value if vehicle.mileage_unit else 'km'}\n"
            f"- Fuel Type: {vehicle.fuel_type.value if vehicle.fuel_type else 'Unknown'}\n"
        )
    elif diagnosis.vehicle_info:
        vehicle_info = f"Vehicle Information:\n- {diagnosis.vehicle_info}\n"

    symptoms = diagnosis.symptoms_description
    if diagnosis.voice_transcription:
        symptoms = f"{symptoms}\n\nVoice note transcription:\n{diagnosis.voice_transcription}"

    images = ""
    if diagnosis.images:
        urls = "\n".join(f"- {image.image_url}" for image in diagnosis.images)
        images = f"\nThe driver attached {len(diagnosis.images)} photo(s):\n{urls}\n"

    return PROMPT_TEMPLATE.format(vehicle_info=vehicle_info, symptoms=symptoms, images=images)


def _as_list(value) -> Optional[List[Any]]:
    if value is None:
        return None
    if isinstance(value, list):
        return value
    return [value]


def _urgency(value) -> UrgencyLevel:
    try:
        return UrgencyLevel(str(value).lower())
    except ValueError:
        return DEFAULT_URGENCY


def _confidence(value) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, score))


class AIDiagnosisService:
    """Sync client used from Celery workers."""

    def __init__(self, provider: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.provider = provider or settings.AI_DEFAULT_PROVIDER
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported AI provider: {self.provider}")
        self.client = client

        if self.provider == "groq":
            self.api_key, self.api_url, self.model = settings.GROQ_API_KEY, settings.GROQ_API_URL, settings.GROQ_MODEL
        elif self.provider == "openai":
            self.api_key, self.api_url, self.model = (
                settings.OPENAI_API_KEY,
                settings.OPENAI_API_URL,
                settings.OPENAI_MODEL,
            )
        else:
            self.api_key, self.api_url, self.model = (
                settings.ANTHROPIC_API_KEY,
                settings.ANTHROPIC_API_URL,
                settings.ANTHROPIC_MODEL,
            )

    def _post(self, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise AIProviderError(f"{self.provider} API key is not configured")
        try:
            if self.client is not None:
                response = self.client.post(self.api_url, headers=headers, json=body, timeout=settings.AI_TIMEOUT)
            else:
                with httpx.Client(timeout=settings.AI_TIMEOUT) as client:
                    response = client.post(self.api_url, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise AIProviderError(f"{self.provider} request failed: {str(e)}") from e

        if response.status_code >= 400:
            raise AIProviderError(f"{self.provider} API error {response.status_code}: {response.text[:500]}")
        return response.json()

    def chat(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Send one prompt and return the model's text reply."""
        if self.provider == "anthropic":
            body: Dict[str, Any] = {
                "model": self.model,
                "max_tokens": settings.AI_MAX_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
            }
            if system_prompt:
                body["system"] = system_prompt
            data = self._post(
                {
                    "x-api-key": self.api_key,
                    "anthropic-version": settings.ANTHROPIC_VERSION,
                    "Content-Type": "application/json",
                },
                body,
            )
            return ((data.get("content") or [{}])[0]).get("text", "")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        data = self._post(
            {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            {
                "model": self.model,
                "messages": messages,
                "temperature": settings.AI_TEMPERATURE,
                "max_tokens": settings.AI_MAX_TOKENS,
            },
        )
        return ((data.get("choices") or [{}])[0]).get("message", {}).get("content", "")

    def diagnose(self, diagnosis: Diagnosis) -> Dict[str, Any]:
        content = self.chat(build_prompt(diagnosis))
        parsed = parse_ai_response(content)
        logger.info(
            "AI diagnosis received",
            diagnosis_id=diagnosis.id,
            provider=self.provider,
            structured="raw_response" not in parsed,
        )
        return parsed

    def apply_result(self, diagnosis: Diagnosis, result: Dict[str, Any]):
        """Copy a parsed reply onto the diagnosis and mark it completed."""
        diagnosis.ai_provider = self.provider
        diagnosis.ai_model = self.model
        diagnosis.ai_diagnosis = result.get("diagnosis") or result.get("raw_response")
        diagnosis.ai_possible_causes = _as_list(result.get("possible_causes")) or []
        diagnosis.ai_recommended_actions = _as_list(result.get("recommended_actions")) or []
        diagnosis.ai_urgency_level = _urgency(result.get("urgency_level", DEFAULT_URGENCY.value))
        diagnosis.ai_confidence_score = _confidence(result.get("confidence_score", DEFAULT_CONFIDENCE))
        diagnosis.ai_safety_warnings = _as_list(result.get("safety_warnings")) or []
        diagnosis.ai_full_response = result
        diagnosis.status = DiagnosisStatus.COMPLETED
        diagnosis.error_message = None
        diagnosis.processed_at = utcnow()
