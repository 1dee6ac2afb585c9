from datetime import datetime, timedelta

import pytest

from conftest import create_lead
from leadconvert import analytics, scores
from leadconvert.db import Activity, Interaction, User, get_session

pytestmark = pytest.mark.asyncio


async def test_conversion_rate_is_zero_without_leads(database):
    metrics = await analytics.conversion_metrics()

    assert metrics == {"totalLeads": 0, "convertedLeads": 0, "lostLeads": 0, "conversionRate": 0}


async def test_conversion_metrics(database):
    async with get_session() as session:
        for status in ("converted", "lost", "new", "qualified"):
            await create_lead(session, status=status)

    metrics = await analytics.conversion_metrics()

    assert metrics["totalLeads"] == 4
    assert metrics["convertedLeads"] == 1
    assert metrics["lostLeads"] == 1
    assert metrics["conversionRate"] == 25


async def test_score_distribution_always_has_five_buckets(database):
    async with get_session() as session:
        for value in (0, 20, 20.5, 55, 80, 100):
            await create_lead(session, lead_score=value)

    distribution = await analytics.lead_score_distribution()

    assert distribution == [
        {"range": "0-20", "count": 2},
        {"range": "21-40", "count": 1},
        {"range": "41-60", "count": 1},
        {"range": "61-80", "count": 1},
        {"range": "81-100", "count": 1},
    ]


async def test_grouped_counts(database):
    async with get_session() as session:
        first = await create_lead(session, source="web_form", status="new")
        await create_lead(session, source="web_form", status="contacted")
        await create_lead(session, source="whatsapp", status="new")
        for channel in ("email", "email", "whatsapp"):
            session.add(Interaction(lead_id=first.id, channel=channel, direction="inbound", content="hi"))
        await session.commit()

    assert await analytics.lead_status_counts() == {"new": 2, "contacted": 1}
    assert await analytics.lead_source_counts() == {"web_form": 2, "whatsapp": 1}
    assert await analytics.interaction_channel_counts() == {"email": 2, "whatsapp": 1}


async def test_leads_over_time_uses_iso_dates_and_window(database):
    now = datetime.utcnow()
    async with get_session() as session:
        await create_lead(session, created_at=now)
        await create_lead(session, created_at=now)
        await create_lead(session, created_at=now - timedelta(days=3))
        await create_lead(session, created_at=now - timedelta(days=45))

    series = await analytics.leads_over_time(30)

    assert series == [
        {"date": (now - timedelta(days=3)).strftime("%Y-%m-%d"), "count": 1},
        {"date": now.strftime("%Y-%m-%d"), "count": 2},
    ]


async def test_dashboard_summary(database):
    async with get_session() as session:
        active = await create_lead(session, status="contacted", last_interaction=datetime.utcnow())
        await create_lead(session, status="converted", last_interaction=datetime.utcnow())
        await create_lead(session, status="qualified")
        session.add(Interaction(lead_id=active.id, channel="whatsapp", direction="inbound", content="unread"))
        session.add(Interaction(lead_id=active.id, channel="whatsapp", direction="inbound", content="seen", read=True))
        session.add(Interaction(lead_id=active.id, channel="whatsapp", direction="outbound", content="reply"))
        await session.commit()

    data = await analytics.dashboard()

    assert data["leadCounts"] == {
        "total": 3,
        "qualified": 1,
        "converted": 1,
        "activeConversations": 1,
        "newToday": 3,
        "unreadMessages": 1,
    }
    assert len(data["recentLeads"]) == 3
    assert "leadScore" in data["recentLeads"][0]
    assert data["recentInteractions"][0]["leadName"] == "Test Lead"
    assert len(data["scoreDistribution"]) == 5
    assert data["conversions"]["conversionRate"] == pytest.approx(100 / 3)


async def test_conversations_keep_latest_message_per_channel(database):
    now = datetime.utcnow()
    async with get_session() as session:
        lead = await create_lead(session, name="Chatty", phone="+15550009999")
        session.add(Interaction(lead_id=lead.id, channel="whatsapp", direction="inbound", content="old", timestamp=now - timedelta(hours=2)))
        session.add(Interaction(lead_id=lead.id, channel="whatsapp", direction="outbound", content="new", timestamp=now))
        session.add(Interaction(lead_id=lead.id, channel="email", direction="inbound", content="mail", timestamp=now - timedelta(hours=1)))
        session.add(Interaction(lead_id=lead.id, channel="email", direction="inbound", content="stale", timestamp=now - timedelta(days=40)))
        session.add(Interaction(lead_id=lead.id, channel="other", direction="outbound", content="insight", type="insight", timestamp=now))
        await session.commit()

    result = await analytics.conversations()

    assert [(item["id"], item["lastMessage"]) for item in result] == [
        (f"{lead.id}-whatsapp", "new"),
        (f"{lead.id}-email", "mail"),
    ]
    assert result[0]["leadPhone"] == "+15550009999"


async def test_insights_created_and_listed(database):
    async with get_session() as session:
        lead = await create_lead(session)

    await analytics.create_insight(lead.id, {"note": "warm"}, [{"action": "Call", "priority": "low", "description": "Ring"}])

    per_lead = await analytics.lead_insights(lead.id)
    recent = await analytics.recent_insights(5)

    assert len(per_lead) == 1
    assert per_lead[0].content == "System generated insight"
    assert recent[0]["lead"]["name"] == "Test Lead"
    assert recent[0]["insights"] == {"note": "warm"}


async def test_user_activity_is_scoped_by_role(database):
    async with get_session() as session:
        admin = User(name="Ada", email="ada@example.com", password_hash="x", role="admin")
        manager = User(name="Max", email="max@example.com", password_hash="x", role="manager")
        agent = User(name="Al", email="al@example.com", password_hash="x", role="agent")
        session.add_all([admin, manager, agent])
        await session.commit()
        for user in (admin, manager, agent):
            await session.refresh(user)

    for user in (admin, manager, agent):
        await scores.add_activity(user.id, "login")
    await scores.add_activity(agent.id, "create_lead")
    async with get_session() as session:
        session.add(Activity(user_id=agent.id, type="other", points=5, timestamp=datetime.utcnow() - timedelta(days=60)))
        await session.commit()

    admin_view = await analytics.user_activity(admin)
    manager_view = await analytics.user_activity(manager)
    agent_view = await analytics.user_activity(agent)

    assert {entry["userId"] for entry in admin_view} == {admin.id, manager.id, agent.id}
    assert {entry["userId"] for entry in manager_view} == {manager.id, agent.id}
    assert [entry["userId"] for entry in agent_view] == [agent.id]
    assert agent_view[0]["last30DaysScore"] == 80
    assert agent_view[0]["activityBreakdown"] == {
        "login": {"count": 1, "points": 50},
        "create_lead": {"count": 1, "points": 30},
    }


async def test_top_users_follow_the_leaderboard(database):
    async with get_session() as session:
        users = [
            User(name=name, email=f"{name.lower()}@example.com", password_hash="x")
            for name in ("Bo", "Cy", "Di")
        ]
        session.add_all(users)
        await session.commit()
        for user in users:
            await session.refresh(user)

    await scores.add_activity(users[1].id, "login")
    await scores.add_activity(users[2].id, "create_lead")

    top = await analytics.top_users(limit=2)

    assert [user.id for user in top] == [users[1].id, users[2].id]
    assert [user.id for user in top] == [user.id for user in await scores.leaderboard(limit=2)]
