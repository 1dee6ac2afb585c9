from typing import List

from fastapi import APIRouter, Depends, HTTPException

from leadconvert import analytics
from leadconvert.auth import current_user, require_roles
from leadconvert.db import Lead, User, get_session
from leadconvert.schemas import InsightIn, InteractionOut, UserOut

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/leads/status")
async def leads_by_status():
    return await analytics.lead_status_counts()


@router.get("/leads/source")
async def leads_by_source():
    return await analytics.lead_source_counts()


@router.get("/leads/scores")
async def lead_scores():
    return await analytics.lead_score_distribution()


@router.get("/leads/time")
async def leads_over_time(days: int = 30):
    if days < 1:
        raise HTTPException(status_code=400, detail="days must be a positive integer")
    return await analytics.leads_over_time(days)


@router.get("/conversions")
async def conversions():
    return await analytics.conversion_metrics()


@router.get("/interactions/channel")
async def interactions_by_channel():
    return await analytics.interaction_channel_counts()


@router.get("/dashboard")
async def dashboard():
    return await analytics.dashboard()


@router.get("/insights/lead/{lead_id}", response_model=List[InteractionOut])
async def lead_insights(lead_id: int):
    return await analytics.lead_insights(lead_id)


@router.get("/insights/recent")
async def recent_insights(limit: int = 10):
    return await analytics.recent_insights(limit)


@router.post("/insights", response_model=InteractionOut, status_code=201)
async def create_insight(payload: InsightIn, user: User = Depends(current_user)):
    async with get_session() as session:
        lead = await session.get(Lead, payload.lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return await analytics.create_insight(
        payload.lead_id,
        payload.insights,
        [action.model_dump() for action in payload.recommended_actions],
        created_by=user.id,
    )


@router.get("/users/top", response_model=List[UserOut])
async def top_users(limit: int = 10, _: User = Depends(require_roles("admin", "manager"))):
    return await analytics.top_users(limit)


@router.get("/users/activity")
async def users_activity(user: User = Depends(current_user)):
    return await analytics.user_activity(user)
