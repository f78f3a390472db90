"""
Traitements des files `user-requests` et `ai-analysis`.

Chaque type de demande construit un prompt dedie puis appelle le modele.
Un type inconnu leve ValueError (non rejouable).
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from casefile.common.clients.gemini_client import GeminiClient

logger = logging.getLogger(__name__)

REQUEST_PRIORITIES = {"urgent": 1, "high": 2, "medium": 3, "low": 4}

CASE_ANALYSIS_PROMPT = """Analyze the following legal case and provide insights:

Case Details:
{data}

Please provide:
1. Key legal issues
2. Potential arguments
3. Relevant precedents
4. Risk assessment
5. Recommendations

Format the response as structured JSON."""

DOCUMENT_SUMMARY_PROMPT = """Summarize the following legal document:

Document Content:
{content}

Please provide:
1. Executive summary
2. Key points
3. Legal implications
4. Action items

Format the response as structured JSON."""

LEGAL_ADVICE_PROMPT = """Provide legal advice for the following situation:

Situation:
{situation}

Context:
{context}

Please provide:
1. Legal analysis
2. Potential courses of action
3. Risks and considerations
4. Recommended next steps

Format the response as structured JSON."""

TIMELINE_GENERATION_PROMPT = """Generate a legal timeline for the following case:

Case Information:
{data}

Please create a chronological timeline with:
1. Key dates and events
2. Legal deadlines
3. Important milestones
4. Required actions

Format the response as a structured timeline JSON."""

ANALYSIS_PROMPT = """{intro}

Content:
{content}
{context}
Please {verb}:
{items}

Format the response as structured JSON."""

ANALYSIS_TYPES: Dict[str, Dict[str, Any]] = {
    "legal_review": {
        "intro": "Perform a comprehensive legal review of the following content:",
        "verb": "provide",
        "items": [
            "Legal issues identified",
            "Regulatory compliance status",
            "Potential legal risks",
            "Recommendations for compliance",
            "Relevant legal precedents",
        ],
    },
    "risk_assessment": {
        "intro": "Conduct a risk assessment for the following legal content:",
        "verb": "assess",
        "items": [
            "Legal risk level (Low/Medium/High/Critical)",
            "Specific risk factors",
            "Potential consequences",
            "Risk mitigation strategies",
            "Priority actions required",
        ],
    },
    "compliance_check": {
        "intro": "Perform a compliance check for the following content:",
        "verb": "check compliance with",
        "items": [
            "Relevant laws and regulations",
            "Industry standards",
            "Internal policies",
            "Compliance gaps identified",
            "Required corrective actions",
        ],
    },
    "evidence_analysis": {
        "intro": "Analyze the evidence presented in the following content:",
        "verb": "analyze",
        "items": [
            "Evidence strength and reliability",
            "Admissibility considerations",
            "Potential challenges",
            "Supporting documentation needed",
            "Evidence presentation recommendations",
        ],
    },
}

USER_REQUEST_TYPES = ("case_analysis", "document_summary", "legal_advice", "timeline_generation")


def priority_for_request(priority: Optional[str]) -> int:
    return REQUEST_PRIORITIES.get((priority or "medium").lower(), REQUEST_PRIORITIES["medium"])


@dataclass
class UserRequestPayload:
    request_id: str
    user_id: int
    case_id: int
    request_type: str
    request_data: Dict[str, Any] = field(default_factory=dict)
    priority: str = "medium"

    def to_kwargs(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AIAnalysisPayload:
    analysis_id: str
    document_id: int
    case_id: int
    analysis_type: str
    content: str
    context: Optional[Dict[str, Any]] = None

    def to_kwargs(self) -> Dict[str, Any]:
        return asdict(self)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def build_user_request_prompt(request_type: str, request_data: Dict[str, Any]) -> str:
    if request_type == "case_analysis":
        return CASE_ANALYSIS_PROMPT.format(data=_dump(request_data))
    if request_type == "document_summary":
        return DOCUMENT_SUMMARY_PROMPT.format(content=request_data.get("content", ""))
    if request_type == "legal_advice":
        return LEGAL_ADVICE_PROMPT.format(
            situation=request_data.get("situation", ""),
            context=request_data.get("context", ""),
        )
    if request_type == "timeline_generation":
        return TIMELINE_GENERATION_PROMPT.format(data=_dump(request_data))
    raise ValueError(f"Unknown request type: {request_type}")


def build_analysis_prompt(analysis_type: str, content: str, context: Optional[Dict[str, Any]] = None) -> str:
    template = ANALYSIS_TYPES.get(analysis_type)
    if template is None:
        raise ValueError(f"Unknown analysis type: {analysis_type}")
    items = "\n".join(f"{index}. {item}" for index, item in enumerate(template["items"], start=1))
    return ANALYSIS_PROMPT.format(
        intro=template["intro"],
        content=content,
        context=f"\nContext: {_dump(context)}\n" if context else "",
        verb=template["verb"],
        items=items,
    )


async def handle_user_request(client: GeminiClient, payload: UserRequestPayload) -> Dict[str, Any]:
    logger.info(
        f"[UserRequest] Processing request {payload.request_id} of type {payload.request_type} "
        f"for case {payload.case_id}"
    )
    prompt = build_user_request_prompt(payload.request_type, payload.request_data)
    result = await client.generate_text(prompt)
    logger.info(f"[UserRequest] ✅ Request {payload.request_id} processed")
    return {"success": True, "request_id": payload.request_id, "result": result}


async def handle_ai_analysis(client: GeminiClient, payload: AIAnalysisPayload) -> Dict[str, Any]:
    logger.info(
        f"[AIAnalysis] Processing analysis {payload.analysis_id} of type {payload.analysis_type} "
        f"for document {payload.document_id}"
    )
    prompt = build_analysis_prompt(payload.analysis_type, payload.content, payload.context)
    analysis = await client.generate_text(prompt)
    logger.info(f"[AIAnalysis] ✅ Analysis {payload.analysis_id} completed")
    return {
        "success": True,
        "analysis_id": payload.analysis_id,
        "document_id": payload.document_id,
        "analysis": analysis,
    }


__all__ = [
    "REQUEST_PRIORITIES",
    "USER_REQUEST_TYPES",
    "ANALYSIS_TYPES",
    "UserRequestPayload",
    "AIAnalysisPayload",
    "priority_for_request",
    "build_user_request_prompt",
    "build_analysis_prompt",
    "handle_user_request",
    "handle_ai_analysis",
]
