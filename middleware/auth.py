"""JWT 인증 미들웨어"""
from datetime import timedelta
from typing import Optional
from uuid import UUID

import bcrypt
import jwt
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db, utcnow
from errors import Unauthorized
from models.user import User


def hash_password(password: str) -> str:
    """bcrypt 비밀번호 해시"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """비밀번호 검증"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: UUID, expires_minutes: Optional[int] = None) -> str:
    """액세스 토큰 발급 (sub = user id)"""
    now = utcnow()
    expires = now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": expires,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> User:
    """JWT 토큰으로 현재 사용자 조회

    Authorization 헤더: Bearer <token>
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized("Authorization header required")

    token = authorization.replace("Bearer ", "", 1)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")

    try:
        user_id = UUID(payload.get("sub", ""))
    except ValueError:
        raise Unauthorized("Invalid token")

    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise Unauthorized("User not found")

    return user
