from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import select

from leadconvert import analytics, lifecycle, scores, webhooks
from leadconvert.agents.lead_scoring import LeadNotFound, score_lead
from leadconvert.auth import current_user
from leadconvert.db import Interaction, Lead, User, get_session
from leadconvert.schemas import InteractionIn, InteractionOut, InteractionUpdate, TrackEventIn

router = APIRouter(prefix="/interactions", tags=["interactions"])


@router.get("", response_model=List[InteractionOut])
async def list_interactions(limit: int = 100):
    async with get_session() as session:
        interactions = (
            await session.exec(
                select(Interaction).order_by(Interaction.timestamp.desc(), Interaction.id.desc()).limit(limit)
            )
        ).all()
    return interactions


@router.get("/conversations")
async def list_conversations():
    return await analytics.conversations()


@router.get("/lead/{lead_id}", response_model=List[InteractionOut])
async def lead_interactions(lead_id: int, channel: Optional[str] = None):
    statement = select(Interaction).where(
        Interaction.lead_id == lead_id,
        Interaction.type == "communication",
    )
    if channel:
        statement = statement.where(Interaction.channel == channel)
    async with get_session() as session:
        interactions = (
            await session.exec(statement.order_by(Interaction.timestamp.desc(), Interaction.id.desc()))
        ).all()
    return interactions


@router.post("", response_model=InteractionOut, status_code=201)
async def create_interaction(payload: InteractionIn, user: User = Depends(current_user)):
    """Log an interaction by hand.

    Inbound messages move the lead to ``contacted`` and trigger a rescoring pass.
    """
    now = datetime.utcnow()
    inbound = payload.direction == "inbound"
    async with get_session() as session:
        lead = await session.get(Lead, payload.lead_id)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")
        interaction = Interaction(
            lead_id=payload.lead_id,
            channel=payload.channel,
            direction=payload.direction,
            content=payload.content,
            type=payload.type,
            sentiment=payload.sentiment,
            intent_score=payload.intent_score,
            created_by=user.id,
            timestamp=now,
        )
        session.add(interaction)
        if inbound:
            lifecycle.advance(lead, "contacted")
            lead.last_interaction = now
            lead.last_interaction_channel = payload.channel
            lead.updated_at = now
            session.add(lead)
        await session.commit()
        await session.refresh(interaction)
        lead_name = lead.name

    await scores.add_activity(
        user.id,
        "interaction",
        f"Created {payload.direction} interaction via {payload.channel} for lead {lead_name}",
    )
    if inbound and payload.type == "communication":
        await score_lead(payload.lead_id)
    return interaction


@router.get("/{interaction_id}", response_model=InteractionOut)
async def get_interaction(interaction_id: int):
    async with get_session() as session:
        interaction = await session.get(Interaction, interaction_id)
    if not interaction:
        raise HTTPException(status_code=404, detail="Interaction not found")
    return interaction


@router.patch("/{interaction_id}", response_model=InteractionOut)
async def update_interaction(
    interaction_id: int,
    payload: InteractionUpdate,
    user: User = Depends(current_user),
):
    changes = payload.model_dump(exclude_unset=True)
    async with get_session() as session:
        interaction = await session.get(Interaction, interaction_id)
        if not interaction:
            raise HTTPException(status_code=404, detail="Interaction not found")
        for key, value in changes.items():
            if key in ("content", "read") and value is None:
                continue
            setattr(interaction, key, value)
        session.add(interaction)
        await session.commit()
        await session.refresh(interaction)

    await scores.add_activity(user.id, "other", f"Updated interaction for lead ID {interaction.lead_id}")
    return interaction


@router.delete("/{interaction_id}")
async def delete_interaction(interaction_id: int, user: User = Depends(current_user)):
    async with get_session() as session:
        interaction = await session.get(Interaction, interaction_id)
        if not interaction:
            raise HTTPException(status_code=404, detail="Interaction not found")
        lead_id = interaction.lead_id
        await session.delete(interaction)
        await session.commit()

    await scores.add_activity(user.id, "other", f"Deleted interaction for lead ID {lead_id}")
    return {"message": "Interaction deleted"}


@router.post("/track/email-open/{lead_id}")
async def track_email_open(lead_id: int, payload: Optional[TrackEventIn] = None):
    event_id = payload.event_id if payload else None
    try:
        interaction = await webhooks.track_email_open(lead_id, event_id=event_id)
    except LeadNotFound as exc:
        raise HTTPException(status_code=404, detail="Lead not found") from exc
    return {"message": "OK", "recorded": interaction is not None}


@router.post("/track/link-click/{lead_id}")
async def track_link_click(lead_id: int, payload: Optional[TrackEventIn] = None):
    payload = payload or TrackEventIn()
    try:
        interaction = await webhooks.track_link_click(lead_id, url=payload.url, event_id=payload.event_id)
    except LeadNotFound as exc:
        raise HTTPException(status_code=404, detail="Lead not found") from exc
    return {"message": "OK", "recorded": interaction is not None}
