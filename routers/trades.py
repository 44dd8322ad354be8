"""거래 라우터"""
from typing import List
from uuid import UUID
from decimal import Decimal
from pydantic import BaseModel, Field

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from models.participation import Participation
from middleware.auth import get_current_user
from services.trade_engine import TradeEngine
from schemas import TradeResponse, trade_to_response
from cache import participation_lock, invalidate_leaderboard

router = APIRouter()


class TradeCloseRequest(BaseModel):
    """거래 청산 요청"""
    close_price: Decimal = Field(..., gt=0, max_digits=20, decimal_places=8)


@router.get("", response_model=List[TradeResponse])
async def list_trades(
    limit: int = Query(default=100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """내 전체 거래 내역 (최신순)"""
    trades = await TradeEngine(db).list_user_trades(user.id, limit=limit)
    return [trade_to_response(trade) for trade in trades]


@router.patch("/{trade_id}/close", response_model=TradeResponse)
async def close_trade(
    trade_id: UUID,
    request: TradeCloseRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """포지션 청산 (본인 거래만)

    청산 손익이 잔고에 반영되므로 해당 챌린지의 리더보드 캐시를 무효화한다.
    """
    engine = TradeEngine(db)
    trade = await engine.get_trade(trade_id)

    try:
        async with participation_lock(trade.participation_id):
            trade = await engine.close_trade(trade_id, request.close_price, user_id=user.id)
    except TimeoutError:
        raise HTTPException(
            status_code=429,
            detail="Too many concurrent requests. Please try again."
        )

    result = await db.execute(
        select(Participation.challenge_id).where(Participation.id == trade.participation_id)
    )
    await invalidate_leaderboard(result.scalar_one())

    return trade_to_response(trade)
