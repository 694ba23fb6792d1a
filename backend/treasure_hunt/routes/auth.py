from __future__ import annotations
from fastapi import APIRouter, Depends, Header
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from treasure_hunt.auth_deps import get_current_user
from treasure_hunt.db import get_session
from treasure_hunt.errors import AlreadyExists, Unauthenticated
from treasure_hunt.models.user import User
from treasure_hunt.schemas.auth import RegisterRequest, LoginRequest, UserPublic, TokenPair
from treasure_hunt.security import hash_password, verify_password, make_access_token, make_refresh_token, decode_token

router = APIRouter(prefix="/auth", tags=["auth"])

def to_public(user: User) -> UserPublic:
    return UserPublic(id=user.id, email=user.email, role=user.role, created_at=user.created_at)

@router.post("/register", status_code=201, response_model=UserPublic)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_session)):
    email = payload.email.lower()
    exists = await session.scalar(select(User).where(func.lower(User.email) == email))
    if exists:
        raise AlreadyExists("Email already registered.")
    user = User(email=email, password_hash=hash_password(payload.password), claims={})
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return to_public(user)

@router.post("/login", response_model=TokenPair)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_session)):
    user = await session.scalar(select(User).where(func.lower(User.email) == payload.email.lower()))
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthenticated("Invalid credentials.")
    return TokenPair(access=make_access_token(user.id), refresh=make_refresh_token(user.id))

@router.post("/refresh", response_model=TokenPair)
async def refresh(authorization: str | None = Header(None)):
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthenticated("Missing refresh token.")
    data = decode_token(authorization.split(" ", 1)[1], "refresh")
    sub = data["sub"]
    return TokenPair(access=make_access_token(sub), refresh=make_refresh_token(sub))

@router.get("/me", response_model=UserPublic)
async def me(user: User = Depends(get_current_user)):
    return to_public(user)
