from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Optional

from legalrelay.schemas import ConversationTurn

# ------------------------------------------------------------------------------
# Analysis prompt
# ------------------------------------------------------------------------------

ANALYSIS_SCHEMA = """{
  "summary": {
    "documentType": "string - type of contract (e.g., Service Agreement, Employment Contract)",
    "mainPurpose": "string - primary purpose of the contract",
    "keyHighlights": ["array of 3-5 main contract points"],
    "wordCount": number,
    "estimatedReadingTime": "string - e.g., '5 minutes'"
  },
  "riskAssessment": {
    "overallRisk": "string - Low/Medium/High",
    "favorable": [
      {
        "type": "string - clause category",
        "description": "string - why this clause works in the reader's favor",
        "location": "string - where in the document this appears",
        "recommendation": "string - suggested action"
      }
    ],
    "moderate": [
      {
        "type": "string - risk category",
        "description": "string - detailed description of the concern",
        "location": "string - where in the document this appears",
        "recommendation": "string - suggested action"
      }
    ],
    "critical": [
      {
        "type": "string - risk category",
        "description": "string - detailed description of the serious risk",
        "location": "string - where in the document this appears",
        "recommendation": "string - suggested action"
      }
    ]
  },
  "vagueTerms": [
    {
      "term": "string - the vague term found",
      "context": "string - surrounding context",
      "issue": "string - why this is problematic",
      "suggestion": "string - how to clarify"
    }
  ],
  "keyTerms": [
    {
      "category": "string - e.g., Payment, Termination, Liability",
      "term": "string - the actual term",
      "explanation": "string - plain language explanation",
      "importance": "string - High/Medium/Low"
    }
  ],
  "legalReferences": [
    {
      "reference": "string - statute, regulation or doctrine the document relies on",
      "context": "string - where and how it is invoked"
    }
  ],
  "recommendations": ["string - actionable recommendations for the user"],
  "redFlags": ["string - any major concerns that need immediate attention"],
  "suggestedQuestions": [
    {
      "question": "string - a question the reader is likely to ask about this document",
      "answer": "string - a short plain-language answer grounded in the document"
    }
  ],
  "flowchart": {
    "nodes": [
      {
        "id": "string - unique node id",
        "type": "string - one of start/party/process/decision/end",
        "label": "string - short label",
        "position": {"x": number, "y": number}
      }
    ],
    "edges": [
      {
        "id": "string - unique edge id",
        "source": "string - node id",
        "target": "string - node id",
        "label": "string - optional edge label"
      }
    ]
  }
}"""

RISK_TIER_RULES = """Risk tiers:
- favorable: clauses that protect the reader or are balanced in the reader's favor.
- moderate: clauses that deserve attention or negotiation but are common in practice.
- critical: clauses that expose the reader to serious financial, legal or personal harm.
Only report moderate or critical findings that genuinely exist in the text. If the
document contains none, return empty arrays for those tiers; never invent concerns
to fill a tier."""

FLOWCHART_RULES = """Flowchart conventions:
- Describe the lifecycle of the agreement (signing, obligations, decisions, termination).
- Node types are limited to start, party, process, decision and end.
- Place start nodes at the top-left (small x and y) and end nodes at the bottom-right
  (largest x and y); lay intermediate nodes out between them.
- Every edge must reference existing node ids."""

ANALYSIS_FOCUS = """Focus on:
1. Identifying potentially risky or unfavorable clauses
2. Explaining complex legal language in plain terms
3. Highlighting vague or ambiguous terms that could cause disputes
4. Providing actionable recommendations
5. Being thorough but accessible to non-lawyers"""


def _parties_block(parties: Optional[Mapping[str, Any]]) -> str:
    if not parties:
        return ""
    party1 = parties.get("party1")
    party2 = parties.get("party2")
    if not (party1 or party2):
        return ""
    return (
        "Parties involved:\n"
        f"- Party 1: {party1 or 'Not specified'}\n"
        f"- Party 2: {party2 or 'Not specified'}\n"
    )


def build_analysis_prompt(text: str, parties: Optional[Mapping[str, Any]] = None) -> str:
    """
    Render the document-analysis instruction for the model.

    The document text is embedded verbatim; the party block only appears when
    at least one party name is set.
    """
    sections = [
        "You are an expert legal AI assistant specializing in contract analysis. "
        "Analyze the following legal document and provide a comprehensive "
        "assessment in JSON format.",
        f"Contract Text:\n{text}",
    ]
    parties_block = _parties_block(parties)
    if parties_block:
        sections.append(parties_block)
    sections.extend(
        [
            f"Provide your analysis in the following JSON structure:\n\n{ANALYSIS_SCHEMA}",
            RISK_TIER_RULES,
            FLOWCHART_RULES,
            ANALYSIS_FOCUS,
            "Return only valid JSON without any additional text or formatting.",
        ]
    )
    return "\n\n".join(sections)


# ------------------------------------------------------------------------------
# Question prompt
# ------------------------------------------------------------------------------

PLAIN_PROSE_RULES = """Answer rules:
- Respond in plain prose only. Do not use markdown, asterisks, bullet symbols,
  numbered lists, headings, tables or code blocks.
- Base the answer on the analysis and document above; if they do not contain the
  answer, say so plainly.
- Keep the answer concise and understandable to a non-lawyer."""


def _format_context(analysis_context: Any) -> str:
    if isinstance(analysis_context, str):
        return analysis_context
    return json.dumps(analysis_context, indent=2, ensure_ascii=False, default=str)


def _format_history(history: Iterable[ConversationTurn]) -> str:
    lines = []
    for turn in history:
        speaker = "User" if turn.role == "user" else "Assistant"
        lines.append(f"{speaker}: {turn.content}")
    return "\n".join(lines)


def build_question_prompt(
    question: str,
    analysis_context: Any,
    history: Iterable[ConversationTurn] = (),
    original_text: Optional[str] = None,
) -> str:
    sections = [
        "You are a legal AI assistant answering follow-up questions about a "
        "contract that has already been analyzed.",
        f"Previous analysis:\n{_format_context(analysis_context)}",
    ]
    if original_text:
        sections.append(f"Original document text:\n{original_text}")
    transcript = _format_history(history)
    if transcript:
        sections.append(f"Conversation so far:\n{transcript}")
    sections.append(f"New question:\n{question}")
    sections.append(PLAIN_PROSE_RULES)
    return "\n\n".join(sections)
