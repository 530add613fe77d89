from __future__ import annotations

import datetime as dt
import json
import logging
import math
import re
import uuid
from typing import Any, Dict, List, Mapping, Optional

from json_repair import repair_json
from pydantic import ValidationError

from legalrelay.schemas import AnalysisMetadata, AnalysisResult, SuggestedQuestion

log = logging.getLogger("legalrelay.normalizer")

NEUTRAL_RISK_SCORE = 50
WORDS_PER_MINUTE = 200

LEADING_FENCE_RE = re.compile(r"\A\s*```(?:json)?[ \t]*\n?", re.IGNORECASE)
TRAILING_FENCE_RE = re.compile(r"\n?[ \t]*```\s*\Z")

FALLBACK_QUESTIONS: List[Dict[str, str]] = [
    {
        "question": "What are my main obligations under this document?",
        "answer": "Review the key terms section for payment, delivery and performance duties.",
    },
    {
        "question": "How can this agreement be terminated?",
        "answer": "Look for termination and notice clauses; ask a lawyer if none are stated.",
    },
    {
        "question": "What happens if one party breaches the agreement?",
        "answer": "Check the liability, indemnification and dispute resolution clauses.",
    },
    {
        "question": "Are there any automatic renewals or hidden fees?",
        "answer": "Search the payment and term clauses for renewal, fee and penalty language.",
    },
]


# ------------------------------------------------------------------------------
# Scoring
# ------------------------------------------------------------------------------

def compute_risk_score(favorable: int, moderate: int, critical: int) -> int:
    """
    Share of favorable findings, with moderate ones counting half, on 0-100.
    Returns the neutral midpoint when there are no findings at all.
    """
    total = favorable + moderate + critical
    if total <= 0:
        return NEUTRAL_RISK_SCORE
    # Half-up rounding, so 12.5 scores 13.
    score = math.floor(100 * (favorable + 0.5 * moderate) / total + 0.5)
    return max(0, min(100, score))


def overall_risk_from_score(score: int) -> str:
    """
    Map a 0-100 score (higher is safer) onto the Low/Medium/High label.
    """
    if score >= 70:
        return "Low"
    if score >= 40:
        return "Medium"
    return "High"


def word_count(text: str) -> int:
    return len(text.split())


def reading_time(words: int) -> str:
    minutes = max(1, round(words / WORDS_PER_MINUTE))
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


# ------------------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------------------

def strip_code_fences(raw: str) -> str:
    """
    Remove a markdown fence wrapping the whole reply. Backticks inside the
    payload, such as a quoted clause, are left alone.
    """
    cleaned = LEADING_FENCE_RE.sub("", raw or "")
    return TRAILING_FENCE_RE.sub("", cleaned).strip()


def parse_model_json(raw: str) -> Optional[Dict[str, Any]]:
    """
    Parse the model's payload as a JSON object, repairing it if needed.
    Returns None when nothing object-shaped can be recovered.
    """
    cleaned = strip_code_fences(raw)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(repair_json(cleaned))
        except (json.JSONDecodeError, ValueError, TypeError):
            return None
    return parsed if isinstance(parsed, dict) else None


def _metadata(model: str, parties: Mapping[str, Any], error: Optional[str] = None) -> AnalysisMetadata:
    return AnalysisMetadata(
        analysisId=str(uuid.uuid4()),
        timestamp=dt.datetime.now(dt.timezone.utc).isoformat(),
        model=model,
        parties=dict(parties),
        error=error,
    )


def _fallback_questions() -> List[SuggestedQuestion]:
    return [SuggestedQuestion(**q) for q in FALLBACK_QUESTIONS]


# ------------------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------------------

def degraded_result(
    source_text: str,
    parties: Mapping[str, Any],
    model: str,
    error: str = "JSON parsing failed",
) -> Dict[str, Any]:
    """
    Fixed, valid result used when the model's output cannot be used.
    """
    result = AnalysisResult.model_validate(
        {
            "summary": {
                "documentType": "Legal Document",
                "mainPurpose": "Contract Analysis",
                "keyHighlights": ["Document processed successfully"],
                "wordCount": word_count(source_text),
                "estimatedReadingTime": "5 minutes",
            },
            "riskAssessment": {
                "overallRisk": "Medium",
                "moderate": [
                    {
                        "type": "Analysis Error",
                        "description": "Unable to parse detailed analysis. "
                        "Please try again or contact support.",
                        "location": "General",
                        "recommendation": "Retry analysis or seek manual review",
                    }
                ],
            },
            "recommendations": ["Please retry the analysis for detailed insights"],
        }
    )
    result.suggestedQuestions = _fallback_questions()
    result.riskAssessment.riskScore = compute_risk_score(0, 1, 0)
    result.metadata = _metadata(model, parties, error=error)
    return result.model_dump()


def normalize(
    raw: str,
    parties: Mapping[str, Any],
    source_text: str,
    model: str,
) -> Dict[str, Any]:
    """
    Turn the model's raw reply into a complete AnalysisResult dict.

    Never raises for malformed output: unparseable or unusable payloads come
    back as the degraded result with ``metadata.error`` set.
    """
    payload = parse_model_json(raw)
    if payload is None:
        log.warning("Model output is not a JSON object (%d chars); using fallback", len(raw or ""))
        return degraded_result(source_text, parties, model)

    try:
        result = AnalysisResult.model_validate(payload)
    except ValidationError as exc:
        log.warning("Model output failed schema validation: %s", exc.error_count())
        return degraded_result(source_text, parties, model, error="Schema validation failed")

    summary = result.summary
    if summary.wordCount is None:
        summary.wordCount = word_count(source_text)
    if not summary.estimatedReadingTime:
        summary.estimatedReadingTime = reading_time(summary.wordCount)

    risk = result.riskAssessment
    risk.riskScore = compute_risk_score(
        len(risk.favorable), len(risk.moderate), len(risk.critical)
    )
    label = (risk.overallRisk or "").strip().capitalize()
    risk.overallRisk = label if label in ("Low", "Medium", "High") else overall_risk_from_score(risk.riskScore)

    if not result.suggestedQuestions:
        result.suggestedQuestions = _fallback_questions()

    result.metadata = _metadata(model, parties)

    log.info(
        "normalize: favorable=%d moderate=%d critical=%d score=%d",
        len(risk.favorable),
        len(risk.moderate),
        len(risk.critical),
        risk.riskScore,
    )
    data = result.model_dump()
    data["metadata"].pop("error", None)
    return data
