import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy import update
from sqlmodel import select

from leadconvert.db import ACTIVITY_TYPES, Activity, User, get_session

logger = logging.getLogger("scores")

ACTIVITY_POINTS: Dict[str, int] = {
    "login": 50,
    "create_lead": 30,
    "update_lead": 15,
    "interaction": 25,
    "other": 5,
}


class UserNotFound(LookupError):
    """Raised when an activity targets a user that does not exist."""


def points_for(activity_type: str) -> int:
    return ACTIVITY_POINTS.get(activity_type, ACTIVITY_POINTS["other"])


async def add_activity(user_id: int, activity_type: str, description: str = "") -> User:
    """Append an activity to the ledger and credit its points to the user.

    The score is bumped with a single ``UPDATE ... SET score = score + n`` so
    concurrent activities never lose increments.
    """
    if activity_type not in ACTIVITY_TYPES:
        activity_type = "other"
    points = points_for(activity_type)

    async with get_session() as session:
        user = await session.get(User, user_id)
        if not user:
            raise UserNotFound(f"User {user_id} not found")

        values = {"score": User.score + points}
        if activity_type == "login":
            values["last_login"] = datetime.utcnow()
        await session.execute(
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        session.add(
            Activity(
                user_id=user_id,
                type=activity_type,
                points=points,
                description=description or "",
            )
        )
        await session.commit()
        await session.refresh(user)

    logger.info(
        "activity_recorded",
        extra={"activity": {"user_id": user_id, "type": activity_type, "points": points}},
    )
    return user


async def get_user_score(user_id: int) -> Dict[str, object]:
    async with get_session() as session:
        user = await session.get(User, user_id)
        if not user:
            raise UserNotFound(f"User {user_id} not found")
        activities = (
            await session.exec(
                select(Activity)
                .where(Activity.user_id == user_id)
                .order_by(Activity.timestamp.desc(), Activity.id.desc())
            )
        ).all()
    return {"user": user, "score": user.score, "activities": list(activities)}


async def leaderboard(limit: int = 10) -> List[User]:
    async with get_session() as session:
        users = (
            await session.exec(select(User).order_by(User.score.desc(), User.id).limit(limit))
        ).all()
    return list(users)
