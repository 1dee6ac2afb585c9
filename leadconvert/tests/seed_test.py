import pytest
from sqlmodel import select

from leadconvert import seed
from leadconvert.db import Interaction, Lead, User, get_session

pytestmark = pytest.mark.asyncio


async def test_seed_creates_scored_demo_data(database):
    created = await seed.main(total=5, seed=7)

    async with get_session() as session:
        users = (await session.exec(select(User))).all()
        leads = (await session.exec(select(Lead))).all()
        insights = (await session.exec(select(Interaction).where(Interaction.type == "insight"))).all()

    assert len(users) == len(seed.DEMO_USERS)
    assert len(leads) == len(created) == 5
    assert len(insights) == 5
    assert all(0 <= lead.lead_score <= 100 for lead in leads)
    assert sum(user.score for user in users) == 5 * 30


async def test_seed_is_rerunnable(database):
    await seed.main(total=2, seed=1)
    await seed.main(total=2, seed=2)

    async with get_session() as session:
        users = (await session.exec(select(User))).all()

    assert len(users) == len(seed.DEMO_USERS)
