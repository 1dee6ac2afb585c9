from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from leadconvert import scores
from leadconvert.auth import current_user, require_roles
from leadconvert.db import User
from leadconvert.schemas import ActivityIn, ActivityOut, UserScoreOut

router = APIRouter(prefix="/scores", tags=["scores"])


async def _score_payload(user_id: int) -> UserScoreOut:
    try:
        data = await scores.get_user_score(user_id)
    except scores.UserNotFound as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    user = data["user"]
    return UserScoreOut(
        user_id=user.id,
        name=user.name,
        email=user.email,
        score=user.score,
        activities=[ActivityOut.model_validate(activity) for activity in data["activities"]],
    )


@router.get("/me", response_model=UserScoreOut)
async def my_score(user: User = Depends(current_user)):
    return await _score_payload(user.id)


@router.get("/leaderboard")
async def leaderboard() -> List[Dict[str, Any]]:
    users = await scores.leaderboard(10)
    return [{"id": user.id, "name": user.name, "email": user.email, "score": user.score} for user in users]


@router.get("/user/{user_id}", response_model=UserScoreOut)
async def user_score(user_id: int, _: User = Depends(require_roles("admin", "manager"))):
    return await _score_payload(user_id)


@router.post("/activities", status_code=201)
async def record_activity(payload: ActivityIn, user: User = Depends(current_user)):
    updated = await scores.add_activity(user.id, payload.type, payload.description)
    return {"message": "Activity recorded", "score": updated.score}
