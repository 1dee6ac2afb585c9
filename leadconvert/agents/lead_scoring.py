"""Lead scoring heuristics and the persisting scoring pass."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlmodel import select

from leadconvert import lifecycle
from leadconvert.db import Interaction, Lead, get_session

logger = logging.getLogger("lead_scoring")

SOURCE_WEIGHTS = {
    "web_form": 10,
    "whatsapp": 15,
    "email": 8,
    "other": 5,
}
POSITIVE_KEYWORDS = ("interested", "buy", "purchase", "price", "cost", "available")
NEGATIVE_KEYWORDS = ("not interested", "expensive", "too much", "no thanks")
KEYWORD_WEIGHT = 5
SENTIMENT_VALUES = {"positive": 1, "negative": -1}


class LeadNotFound(LookupError):
    """Raised when scoring is requested for a lead that does not exist."""


@dataclass
class ScoreResult:
    score: float
    status: str
    insights: Dict[str, Any] = field(default_factory=dict)
    recommended_actions: List[Dict[str, str]] = field(default_factory=list)


def _keyword_delta(message: Optional[str]) -> int:
    if not message:
        return 0
    text = message.lower()
    delta = 0
    for keyword in POSITIVE_KEYWORDS:
        if keyword in text:
            delta += KEYWORD_WEIGHT
    for keyword in NEGATIVE_KEYWORDS:
        if keyword in text:
            delta -= KEYWORD_WEIGHT
    return delta


def _interaction_contributions(interactions: Sequence[Interaction]) -> Dict[str, float]:
    if not interactions:
        return {"sentiment": 0.0, "intent": 0.0}
    count = len(interactions)
    sentiment_avg = sum(SENTIMENT_VALUES.get(item.sentiment or "", 0) for item in interactions) / count
    intent_avg = sum(item.intent_score or 0 for item in interactions) / count
    return {
        "sentiment": (sentiment_avg + 1) * 10,
        "intent": intent_avg * 0.5,
    }


def _message_analysis(delta: int, message: Optional[str]) -> str:
    if not message:
        return "none"
    if delta > 0:
        return "positive"
    if delta < 0:
        return "negative"
    return "neutral"


def score(lead: Lead, interactions: Sequence[Interaction]) -> ScoreResult:
    """Compute a 0-100 lead score from source, opening message and past conversation.

    Args:
        lead: Lead being evaluated.
        interactions: Communication interactions already logged for the lead.

    Returns:
        ScoreResult: Clamped score, recommended status, factor breakdown and
        the recommended follow-up action.
    """
    source_weight = SOURCE_WEIGHTS.get(lead.source, 0)
    keyword_delta = _keyword_delta(lead.initial_message)
    contributions = _interaction_contributions(interactions)

    raw = source_weight + keyword_delta + contributions["sentiment"] + contributions["intent"]
    final_score = lifecycle.clamp_score(raw)
    status = lifecycle.recommended_status(final_score)
    high_priority = final_score > lifecycle.QUALIFIED_THRESHOLD

    insights = {
        "score": final_score,
        "factors": {
            "source": source_weight,
            "keywords": keyword_delta,
            "sentiment": round(contributions["sentiment"], 2),
            "intent": round(contributions["intent"], 2),
            "messageAnalysis": _message_analysis(keyword_delta, lead.initial_message),
            "interactionQuality": "good" if interactions else "needs_followup",
        },
        "recommendedStatus": status,
    }
    actions = [
        {
            "action": "Follow Up",
            "priority": "high" if high_priority else "medium",
            "description": (
                "High priority lead - immediate follow-up recommended"
                if high_priority
                else "Schedule follow-up within 24 hours"
            ),
        }
    ]
    return ScoreResult(score=final_score, status=status, insights=insights, recommended_actions=actions)


async def score_lead(lead_id: int) -> ScoreResult:
    """Score a stored lead, persist the result and log an insight interaction."""
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
        if not lead:
            raise LeadNotFound(f"Lead {lead_id} not found")

        interactions = (
            await session.exec(
                select(Interaction).where(
                    Interaction.lead_id == lead_id,
                    Interaction.type == "communication",
                )
            )
        ).all()

        result = score(lead, interactions)
        lifecycle.apply_score(lead, result.score)
        status_changed = lifecycle.apply_recommendation(lead, result.status)

        session.add(lead)
        session.add(
            Interaction(
                lead_id=lead_id,
                channel="other",
                direction="outbound",
                content="Lead scoring insight",
                type="insight",
                insights=result.insights,
                recommended_actions=result.recommended_actions,
            )
        )
        await session.commit()

    logger.info(
        "lead_scored",
        extra={
            "lead_scoring": {
                "lead_id": lead_id,
                "score": result.score,
                "recommended_status": result.status,
                "status_changed": status_changed,
            }
        },
    )
    return result
