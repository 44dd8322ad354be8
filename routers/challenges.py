"""챌린지 라우터"""
from typing import Optional, List, Literal
from uuid import UUID
from pydantic import BaseModel, Field

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from middleware.auth import get_current_user
from services.challenge_service import ChallengeService
from services.leaderboard import LeaderboardRanker
from services.payment_gate import PaymentGate, get_payment_gate
from schemas import (
    ChallengeResponse,
    ChallengeDetailResponse,
    ParticipationResponse,
    challenge_to_response,
    participation_to_response,
)
from cache import get_cached_leaderboard, store_leaderboard, invalidate_leaderboard

router = APIRouter()


class JoinRequest(BaseModel):
    """챌린지 참가 요청"""
    payment_intent_id: str = Field(..., min_length=1, description="결제 확인 토큰")


class LeaderboardEntryResponse(BaseModel):
    """리더보드 항목"""
    position: int
    participation_id: str
    user_id: str
    username: str
    display_name: str
    current_balance: float
    pnl: float
    pnl_percentage: float


@router.get("", response_model=List[ChallengeResponse])
async def list_challenges(
    status: Optional[Literal["upcoming", "active", "completed"]] = Query(default=None),
    db: AsyncSession = Depends(get_db)
):
    """챌린지 목록 조회"""
    challenges = await ChallengeService(db).list_challenges(status)
    return [challenge_to_response(challenge) for challenge in challenges]


@router.get("/{challenge_id}", response_model=ChallengeDetailResponse)
async def get_challenge(
    challenge_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """챌린지 상세 조회 (참가자 수 포함)"""
    service = ChallengeService(db)
    challenge = await service.get_challenge(challenge_id)
    participants_count = await service.count_participants(challenge.id)

    return ChallengeDetailResponse(
        **challenge_to_response(challenge).model_dump(),
        participants_count=participants_count
    )


@router.get("/{challenge_id}/leaderboard", response_model=List[LeaderboardEntryResponse])
async def get_leaderboard(
    challenge_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """리더보드 조회

    순위를 다시 계산해 참가 기록에 저장한다. 결과는 짧은 TTL로 캐시되며
    거래 청산 시 무효화된다.
    """
    cached = await get_cached_leaderboard(challenge_id)
    if cached is not None:
        return [LeaderboardEntryResponse(**entry) for entry in cached]

    entries = await LeaderboardRanker(db).rank(challenge_id)

    result_data = [
        {
            "position": entry.position,
            "participation_id": str(entry.participation_id),
            "user_id": str(entry.user_id),
            "username": entry.username,
            "display_name": entry.display_name,
            "current_balance": float(entry.current_balance),
            "pnl": float(entry.pnl),
            "pnl_percentage": float(entry.pnl_percentage),
        }
        for entry in entries
    ]

    await store_leaderboard(challenge_id, result_data)

    return [LeaderboardEntryResponse(**entry) for entry in result_data]


@router.post("/{challenge_id}/join", response_model=ParticipationResponse, status_code=201)
async def join_challenge(
    challenge_id: UUID,
    request: JoinRequest,
    user: User = Depends(get_current_user),
    payment_gate: PaymentGate = Depends(get_payment_gate),
    db: AsyncSession = Depends(get_db)
):
    """챌린지 참가 (결제 확인 필요)"""
    service = ChallengeService(db, payment_gate)
    participation = await service.join(user.id, challenge_id, request.payment_intent_id)

    await invalidate_leaderboard(challenge_id)

    return participation_to_response(participation)
