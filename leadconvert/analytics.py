from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlmodel import select

from leadconvert import scores
from leadconvert.db import Activity, Interaction, Lead, User, get_session
from leadconvert.schemas import InteractionOut, LeadOut

SCORE_BUCKETS = (
    ("0-20", 20),
    ("21-40", 40),
    ("41-60", 60),
    ("61-80", 80),
    ("81-100", 100),
)
ACTIVITY_WINDOW_DAYS = 30


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


def _bucket_for(score: float) -> str:
    for label, upper in SCORE_BUCKETS:
        if score <= upper:
            return label
    return SCORE_BUCKETS[-1][0]


async def _grouped_counts(column) -> Dict[str, int]:
    async with get_session() as session:
        rows = (await session.exec(select(column, func.count()).group_by(column))).all()
    return {key: int(count) for key, count in rows if key is not None}


async def lead_status_counts() -> Dict[str, int]:
    return await _grouped_counts(Lead.status)


async def lead_source_counts() -> Dict[str, int]:
    return await _grouped_counts(Lead.source)


async def interaction_channel_counts() -> Dict[str, int]:
    return await _grouped_counts(Interaction.channel)


async def conversion_metrics() -> Dict[str, Any]:
    async with get_session() as session:
        total = int(await session.scalar(select(func.count()).select_from(Lead)) or 0)
        converted = int(
            await session.scalar(select(func.count()).select_from(Lead).where(Lead.status == "converted"))
            or 0
        )
        lost = int(
            await session.scalar(select(func.count()).select_from(Lead).where(Lead.status == "lost")) or 0
        )
    return {
        "totalLeads": total,
        "convertedLeads": converted,
        "lostLeads": lost,
        "conversionRate": (converted / total * 100) if total else 0,
    }


async def lead_score_distribution() -> List[Dict[str, Any]]:
    async with get_session() as session:
        scores = (await session.exec(select(Lead.lead_score))).all()
    counts = {label: 0 for label, _ in SCORE_BUCKETS}
    for value in scores:
        counts[_bucket_for(value or 0)] += 1
    return [{"range": label, "count": counts[label]} for label, _ in SCORE_BUCKETS]


async def leads_over_time(days: int = 30) -> List[Dict[str, Any]]:
    start = datetime.utcnow() - timedelta(days=days)
    async with get_session() as session:
        created = (await session.exec(select(Lead.created_at).where(Lead.created_at >= start))).all()
    per_day: Dict[str, int] = {}
    for ts in created:
        key = ts.strftime("%Y-%m-%d")
        per_day[key] = per_day.get(key, 0) + 1
    return [{"date": day, "count": count} for day, count in sorted(per_day.items())]


async def recent_leads(limit: int = 5) -> List[Lead]:
    async with get_session() as session:
        leads = (
            await session.exec(select(Lead).order_by(Lead.created_at.desc(), Lead.id.desc()).limit(limit))
        ).all()
    return list(leads)


async def _lead_lookup(session, lead_ids: Sequence[int]) -> Dict[int, Lead]:
    if not lead_ids:
        return {}
    leads = (await session.exec(select(Lead).where(Lead.id.in_(set(lead_ids))))).all()
    return {lead.id: lead for lead in leads}


async def recent_interactions(limit: int = 5) -> List[Dict[str, Any]]:
    async with get_session() as session:
        interactions = (
            await session.exec(
                select(Interaction).order_by(Interaction.timestamp.desc(), Interaction.id.desc()).limit(limit)
            )
        ).all()
        leads = await _lead_lookup(session, [item.lead_id for item in interactions])
    return [
        {
            "id": item.id,
            "leadId": item.lead_id,
            "leadName": leads[item.lead_id].name if item.lead_id in leads else "Unknown Lead",
            "channel": item.channel,
            "direction": item.direction,
            "content": item.content,
            "timestamp": item.timestamp.isoformat(),
        }
        for item in interactions
    ]


async def dashboard() -> Dict[str, Any]:
    """Summary used by the dashboard landing page."""
    status_counts = await lead_status_counts()
    source_counts = await lead_source_counts()
    conversions = await conversion_metrics()
    score_distribution = await lead_score_distribution()
    channel_counts = await interaction_channel_counts()
    latest_leads = await recent_leads(5)
    latest_interactions = await recent_interactions(5)

    today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    async with get_session() as session:
        new_today = int(
            await session.scalar(select(func.count()).select_from(Lead).where(Lead.created_at >= today)) or 0
        )
        active_conversations = int(
            await session.scalar(
                select(func.count())
                .select_from(Lead)
                .where(Lead.status.not_in(("converted", "lost")), Lead.last_interaction.is_not(None))
            )
            or 0
        )
        unread_messages = int(
            await session.scalar(
                select(func.count())
                .select_from(Interaction)
                .where(Interaction.direction == "inbound", Interaction.read.is_(False))
            )
            or 0
        )

    return {
        "leadCounts": {
            "total": sum(status_counts.values()),
            "qualified": status_counts.get("qualified", 0),
            "converted": status_counts.get("converted", 0),
            "activeConversations": active_conversations,
            "newToday": new_today,
            "unreadMessages": unread_messages,
        },
        "leadsByStatus": status_counts,
        "leadsBySource": source_counts,
        "conversions": conversions,
        "scoreDistribution": score_distribution,
        "channelEngagement": channel_counts,
        "recentLeads": [_dump(LeadOut.model_validate(lead)) for lead in latest_leads],
        "recentInteractions": latest_interactions,
    }


async def conversations(days: int = 30) -> List[Dict[str, Any]]:
    """Latest communication per lead and channel within the last ``days``."""
    since = datetime.utcnow() - timedelta(days=days)
    async with get_session() as session:
        interactions = (
            await session.exec(
                select(Interaction)
                .where(Interaction.type == "communication", Interaction.timestamp >= since)
                .order_by(Interaction.timestamp.desc(), Interaction.id.desc())
            )
        ).all()
        latest: Dict[tuple, Interaction] = {}
        for item in interactions:
            latest.setdefault((item.lead_id, item.channel), item)
        leads = await _lead_lookup(session, [lead_id for lead_id, _ in latest])

    result = []
    for (lead_id, channel), item in latest.items():
        lead = leads.get(lead_id)
        if not lead:
            continue
        result.append(
            {
                "id": f"{lead_id}-{channel}",
                "leadId": lead_id,
                "channel": channel,
                "leadName": lead.name,
                "leadEmail": lead.email,
                "leadPhone": lead.phone,
                "lastMessage": item.content,
                "lastDirection": item.direction,
                "lastTimestamp": item.timestamp.isoformat(),
            }
        )
    return result


async def lead_insights(lead_id: int) -> List[Interaction]:
    async with get_session() as session:
        insights = (
            await session.exec(
                select(Interaction)
                .where(Interaction.lead_id == lead_id, Interaction.type == "insight")
                .order_by(Interaction.timestamp.desc(), Interaction.id.desc())
            )
        ).all()
    return list(insights)


async def recent_insights(limit: int = 10) -> List[Dict[str, Any]]:
    async with get_session() as session:
        insights = (
            await session.exec(
                select(Interaction)
                .where(Interaction.type == "insight")
                .order_by(Interaction.timestamp.desc(), Interaction.id.desc())
                .limit(limit)
            )
        ).all()
        leads = await _lead_lookup(session, [item.lead_id for item in insights])

    payload = []
    for item in insights:
        entry = _dump(InteractionOut.model_validate(item))
        lead = leads.get(item.lead_id)
        entry["lead"] = {"id": lead.id, "name": lead.name, "email": lead.email} if lead else None
        payload.append(entry)
    return payload


async def create_insight(
    lead_id: int,
    insights: Dict[str, Any],
    recommended_actions: List[Dict[str, Any]],
    created_by: Optional[int] = None,
) -> Interaction:
    async with get_session() as session:
        insight = Interaction(
            lead_id=lead_id,
            type="insight",
            channel="other",
            direction="outbound",
            content="System generated insight",
            insights=insights,
            recommended_actions=recommended_actions,
            created_by=created_by,
        )
        session.add(insight)
        await session.commit()
        await session.refresh(insight)
    return insight


async def top_users(limit: int = 10) -> List[User]:
    return await scores.leaderboard(limit)


async def user_activity(viewer: User) -> List[Dict[str, Any]]:
    """30-day activity breakdown, scoped by the viewer's role.

    Admins see everyone, managers see everyone except admins, agents see
    themselves. Users without activity in the window are omitted.
    """
    since = datetime.utcnow() - timedelta(days=ACTIVITY_WINDOW_DAYS)
    async with get_session() as session:
        user_stmt = select(User).order_by(User.id)
        if viewer.role == "manager":
            user_stmt = user_stmt.where(User.role != "admin")
        elif viewer.role != "admin":
            user_stmt = user_stmt.where(User.id == viewer.id)
        users = (await session.exec(user_stmt)).all()

        user_ids = [user.id for user in users]
        activities = []
        if user_ids:
            activities = (
                await session.exec(
                    select(Activity).where(Activity.user_id.in_(user_ids), Activity.timestamp >= since)
                )
            ).all()

    by_user: Dict[int, List[Activity]] = {}
    for activity in activities:
        by_user.setdefault(activity.user_id, []).append(activity)

    summary = []
    for user in users:
        recent = by_user.get(user.id)
        if not recent:
            continue
        breakdown: Dict[str, Dict[str, int]] = {}
        for activity in recent:
            entry = breakdown.setdefault(activity.type, {"count": 0, "points": 0})
            entry["count"] += 1
            entry["points"] += activity.points
        summary.append(
            {
                "userId": user.id,
                "name": user.name,
                "email": user.email,
                "role": user.role,
                "totalScore": user.score,
                "last30DaysScore": sum(activity.points for activity in recent),
                "activityBreakdown": breakdown,
            }
        )
    return summary
