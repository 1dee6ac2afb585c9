import pytest
from sqlmodel import select

from leadconvert import scores
from leadconvert.db import Activity, User, get_session

pytestmark = pytest.mark.asyncio


async def _user(name: str = "Agent", email: str = "agent@example.com", role: str = "agent") -> User:
    async with get_session() as session:
        user = User(name=name, email=email, password_hash="x", role=role)
        session.add(user)
        await session.commit()
        await session.refresh(user)
    return user


async def test_score_equals_sum_of_activity_points(database):
    user = await _user()
    kinds = ["login", "create_lead", "update_lead", "interaction", "other", "create_lead"]

    for kind in kinds:
        updated = await scores.add_activity(user.id, kind, f"did {kind}")

    async with get_session() as session:
        activities = (await session.exec(select(Activity).where(Activity.user_id == user.id))).all()

    assert len(activities) == len(kinds)
    assert updated.score == sum(activity.points for activity in activities) == 50 + 30 + 15 + 25 + 5 + 30


async def test_unknown_activity_type_recorded_as_other(database):
    user = await _user()

    updated = await scores.add_activity(user.id, "made_coffee")

    async with get_session() as session:
        activity = (await session.exec(select(Activity).where(Activity.user_id == user.id))).one()

    assert activity.type == "other"
    assert activity.points == 5
    assert updated.score == 5


async def test_login_sets_last_login(database):
    user = await _user()
    assert user.last_login is None

    updated = await scores.add_activity(user.id, "login", "User logged in")

    assert updated.last_login is not None
    assert updated.score == 50


async def test_missing_user(database):
    with pytest.raises(scores.UserNotFound):
        await scores.add_activity(404, "login")
    with pytest.raises(scores.UserNotFound):
        await scores.get_user_score(404)


async def test_get_user_score_lists_newest_first(database):
    user = await _user()
    await scores.add_activity(user.id, "login", "first")
    await scores.add_activity(user.id, "interaction", "second")

    data = await scores.get_user_score(user.id)

    assert data["score"] == 75
    assert [activity.description for activity in data["activities"]] == ["second", "first"]


async def test_leaderboard_orders_by_score(database):
    low = await _user("Low", "low@example.com")
    high = await _user("High", "high@example.com")
    await scores.add_activity(low.id, "other")
    await scores.add_activity(high.id, "login")

    board = await scores.leaderboard(limit=1)

    assert [user.id for user in board] == [high.id]
