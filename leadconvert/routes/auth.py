from fastapi import APIRouter, Depends, HTTPException, Response
from sqlmodel import select

from leadconvert import scores
from leadconvert.auth import (
    clear_session_cookie,
    current_user,
    hash_password,
    set_session_cookie,
    verify_password,
)
from leadconvert.db import User, get_session
from leadconvert.schemas import ChangePasswordIn, LoginIn, RegisterIn, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201)
async def register(payload: RegisterIn, response: Response):
    email = payload.email.lower()
    async with get_session() as session:
        existing = (await session.exec(select(User).where(User.email == email))).first()
        if existing:
            raise HTTPException(status_code=400, detail="User already exists")
        user = User(
            name=payload.name,
            email=email,
            password_hash=hash_password(payload.password),
            role=payload.role or "agent",
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)

    set_session_cookie(response, user.id)
    return {"message": "User registered successfully", "user": UserOut.model_validate(user)}


@router.post("/login")
async def login(payload: LoginIn, response: Response):
    async with get_session() as session:
        user = (await session.exec(select(User).where(User.email == payload.email.lower()))).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    user = await scores.add_activity(user.id, "login", "User logged in")
    set_session_cookie(response, user.id)
    return {"message": "Login successful", "user": UserOut.model_validate(user)}


@router.post("/logout")
async def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out successfully"}


@router.get("/me")
async def me(user: User = Depends(current_user)):
    return {"user": UserOut.model_validate(user)}


@router.post("/change-password")
async def change_password(payload: ChangePasswordIn, user: User = Depends(current_user)):
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    async with get_session() as session:
        stored = await session.get(User, user.id)
        stored.password_hash = hash_password(payload.new_password)
        session.add(stored)
        await session.commit()

    await scores.add_activity(user.id, "other", "Changed password")
    return {"message": "Password updated successfully"}
