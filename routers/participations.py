"""참가 기록 라우터"""
from typing import List, Literal
from uuid import UUID
from decimal import Decimal
from pydantic import BaseModel, Field

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from middleware.auth import get_current_user
from services.challenge_service import ChallengeService
from services.trade_engine import TradeEngine
from schemas import (
    ParticipationWithChallengeResponse,
    TradeResponse,
    challenge_to_response,
    participation_to_response,
    trade_to_response,
)
from cache import participation_lock

router = APIRouter()


class TradeOpenRequest(BaseModel):
    """거래 진입 요청 (가격은 클라이언트가 제공)"""
    symbol: str = Field(..., min_length=1, max_length=20)
    direction: Literal["buy", "sell"]
    open_price: Decimal = Field(..., gt=0, max_digits=20, decimal_places=8)
    volume: Decimal = Field(..., gt=0, max_digits=20, decimal_places=4)


async def _list_participations(user: User, db: AsyncSession, active_only: bool) -> List[ParticipationWithChallengeResponse]:
    rows = await ChallengeService(db).list_participations(user.id, active_only=active_only)
    return [
        ParticipationWithChallengeResponse(
            **participation_to_response(participation).model_dump(),
            challenge=challenge_to_response(challenge)
        )
        for participation, challenge in rows
    ]


@router.get("", response_model=List[ParticipationWithChallengeResponse])
async def list_participations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """내 참가 목록 (챌린지 포함)"""
    return await _list_participations(user, db, active_only=False)


@router.get("/active", response_model=List[ParticipationWithChallengeResponse])
async def list_active_participations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """진행 중인 참가 목록"""
    return await _list_participations(user, db, active_only=True)


@router.get("/{participation_id}/trades", response_model=List[TradeResponse])
async def list_participation_trades(
    participation_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """참가 기록의 거래 내역 (본인만)"""
    participation = await ChallengeService(db).get_owned_participation(participation_id, user.id)
    trades = await TradeEngine(db).list_trades(participation.id)
    return [trade_to_response(trade) for trade in trades]


@router.post("/{participation_id}/trades", response_model=TradeResponse, status_code=201)
async def open_trade(
    participation_id: UUID,
    request: TradeOpenRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """포지션 진입

    같은 참가 기록에 대한 쓰기는 분산 락으로 직렬화한다 (Redis 사용 시).
    """
    engine = TradeEngine(db)

    try:
        async with participation_lock(participation_id):
            trade = await engine.open_trade(
                participation_id,
                symbol=request.symbol,
                direction=request.direction,
                volume=request.volume,
                open_price=request.open_price,
                user_id=user.id
            )
    except TimeoutError:
        raise HTTPException(
            status_code=429,
            detail="Too many concurrent requests. Please try again."
        )

    return trade_to_response(trade)
