"""인증 라우터"""
from typing import Optional
from datetime import datetime
import logging
from pydantic import BaseModel, Field

from fastapi import APIRouter, Depends
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from errors import AlreadyExists, Unauthorized
from models.user import User
from middleware.auth import get_current_user, hash_password, verify_password, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


class UserResponse(BaseModel):
    """사용자 응답 (비밀번호 제외)"""
    id: str
    username: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    display_name: Optional[str]
    created_at: datetime


class AuthResponse(BaseModel):
    """토큰 발급 응답"""
    user: UserResponse
    access_token: str
    token_type: str = "bearer"


class UserRegisterRequest(BaseModel):
    """회원가입 요청"""
    username: str = Field(..., min_length=3, max_length=100)
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=100)


class UserLoginRequest(BaseModel):
    """로그인 요청"""
    username: str
    password: str


class UserUpdateRequest(BaseModel):
    """프로필 수정 요청 (username/email 변경 불가)"""
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=100)


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        display_name=user.display_name,
        created_at=user.created_at
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register_user(
    request: UserRegisterRequest,
    db: AsyncSession = Depends(get_db)
):
    """회원가입 후 액세스 토큰 발급"""
    email = request.email.lower()

    result = await db.execute(
        select(User).where(or_(User.username == request.username, User.email == email))
    )
    existing = result.scalars().first()
    if existing:
        if existing.username == request.username:
            raise AlreadyExists("Username already taken")
        raise AlreadyExists("Email already registered")

    user = User(
        username=request.username,
        email=email,
        password=hash_password(request.password),
        first_name=request.first_name,
        last_name=request.last_name,
        display_name=request.display_name
    )
    db.add(user)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AlreadyExists("Username or email already registered")

    await db.refresh(user)
    logger.info(f"User registered: {user.username}")

    return AuthResponse(
        user=user_to_response(user),
        access_token=create_access_token(user.id)
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """로그인 (username + password)"""
    result = await db.execute(
        select(User).where(User.username == request.username)
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(request.password, user.password):
        raise Unauthorized("Invalid username or password")

    return AuthResponse(
        user=user_to_response(user),
        access_token=create_access_token(user.id)
    )


@router.get("/user", response_model=UserResponse)
async def get_me(
    user: User = Depends(get_current_user)
):
    """현재 로그인한 사용자 정보 조회"""
    return user_to_response(user)


@router.patch("/user", response_model=UserResponse)
async def update_me(
    request: UserUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """프로필 수정 (전달된 필드만 변경)"""
    for field, value in request.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)

    return user_to_response(user)
