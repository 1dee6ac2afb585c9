from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlmodel import select

from leadconvert import lifecycle, scores
from leadconvert.agents.lead_scoring import score_lead
from leadconvert.auth import current_user, require_roles
from leadconvert.db import Interaction, Lead, User, get_session
from leadconvert.integrations.whatsapp import normalize_phone
from leadconvert.schemas import LeadIn, LeadOut, LeadUpdate

router = APIRouter(prefix="/leads", tags=["leads"])

NULLABLE_FIELDS = ("phone", "initial_message")


async def _email_taken(session, email: str, exclude_id: Optional[int] = None) -> bool:
    statement = select(Lead).where(Lead.email == email)
    if exclude_id is not None:
        statement = statement.where(Lead.id != exclude_id)
    return (await session.exec(statement)).first() is not None


@router.get("", response_model=List[LeadOut])
async def list_leads():
    async with get_session() as session:
        leads = (await session.exec(select(Lead).order_by(Lead.lead_score.desc(), Lead.id))).all()
    return leads


@router.get("/{lead_id}", response_model=LeadOut)
async def get_lead(lead_id: int):
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


@router.post("", response_model=LeadOut, status_code=201)
async def create_lead(payload: LeadIn, user: User = Depends(current_user)):
    """Create a lead, score it and credit the creating agent."""
    email = payload.email.lower()
    async with get_session() as session:
        if await _email_taken(session, email):
            raise HTTPException(status_code=400, detail="Lead with this email already exists")
        lead = Lead(
            name=payload.name,
            email=email,
            phone=normalize_phone(payload.phone) if payload.phone else None,
            source=payload.source,
            initial_message=payload.initial_message,
            tags=payload.tags,
            status="new",
            created_by=user.id,
        )
        session.add(lead)
        await session.commit()
        await session.refresh(lead)

    await score_lead(lead.id)
    await scores.add_activity(user.id, "create_lead", f"Created lead for {lead.name}")

    async with get_session() as session:
        return await session.get(Lead, lead.id)


@router.patch("/{lead_id}", response_model=LeadOut)
async def update_lead(lead_id: int, payload: LeadUpdate, user: User = Depends(current_user)):
    changes = payload.model_dump(exclude_unset=True, exclude={"status", "lead_score", "reopen"})
    changes = {key: value for key, value in changes.items() if value is not None or key in NULLABLE_FIELDS}
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")
        previous_status = lead.status

        if "email" in changes and changes["email"]:
            changes["email"] = changes["email"].lower()
            if await _email_taken(session, changes["email"], exclude_id=lead_id):
                raise HTTPException(status_code=400, detail="Lead with this email already exists")
        if changes.get("phone"):
            changes["phone"] = normalize_phone(changes["phone"])
        for key, value in changes.items():
            setattr(lead, key, value)

        if payload.status is not None:
            try:
                lifecycle.transition(lead, payload.status, reopen=payload.reopen)
            except lifecycle.InvalidStatusTransition as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
        if payload.lead_score is not None:
            lifecycle.apply_score(lead, payload.lead_score)

        lead.updated_at = datetime.utcnow()
        session.add(lead)
        await session.commit()
        await session.refresh(lead)

    description = f"Updated lead {lead.name}"
    if previous_status != lead.status:
        description += f" (Status: {previous_status} -> {lead.status})"
    await scores.add_activity(user.id, "update_lead", description)
    return lead


@router.delete("/{lead_id}")
async def delete_lead(lead_id: int, user: User = Depends(require_roles("admin"))):
    async with get_session() as session:
        lead = await session.get(Lead, lead_id)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")
        name = lead.name
        await session.execute(delete(Interaction).where(Interaction.lead_id == lead_id))
        await session.delete(lead)
        await session.commit()

    await scores.add_activity(user.id, "other", f"Deleted lead {name}")
    return {"message": "Lead deleted"}
