"""공용 API 응답 스키마"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from models.challenge import Challenge
from models.participation import Participation
from models.trade import Trade


def _float(value) -> Optional[float]:
    return float(value) if value is not None else None


class ChallengeResponse(BaseModel):
    """챌린지 응답"""
    id: str
    name: str
    description: Optional[str]
    entry_fee: float
    start_time: datetime
    end_time: datetime
    initial_balance: float
    prize_amount: float
    max_participants: int
    type: str
    status: str


class ChallengeDetailResponse(ChallengeResponse):
    """챌린지 상세 응답"""
    participants_count: int


class ParticipationResponse(BaseModel):
    """참가 응답"""
    id: str
    user_id: str
    challenge_id: str
    current_balance: float
    pnl: float
    pnl_percentage: float
    position: Optional[int]
    status: str
    payment_status: str
    payment_intent_id: Optional[str]
    created_at: datetime


class ParticipationWithChallengeResponse(ParticipationResponse):
    """참가 응답 (챌린지 포함)"""
    challenge: Optional[ChallengeResponse]


class TradeResponse(BaseModel):
    """거래 응답"""
    id: str
    participation_id: str
    symbol: str
    direction: str
    open_price: float
    close_price: Optional[float]
    volume: float
    profit: Optional[float]
    status: str
    open_time: datetime
    close_time: Optional[datetime]


def challenge_to_response(challenge: Challenge) -> ChallengeResponse:
    return ChallengeResponse(
        id=str(challenge.id),
        name=challenge.name,
        description=challenge.description,
        entry_fee=float(challenge.entry_fee),
        start_time=challenge.start_time,
        end_time=challenge.end_time,
        initial_balance=float(challenge.initial_balance),
        prize_amount=float(challenge.prize_amount),
        max_participants=challenge.max_participants,
        type=challenge.type,
        status=challenge.status
    )


def participation_to_response(participation: Participation) -> ParticipationResponse:
    return ParticipationResponse(
        id=str(participation.id),
        user_id=str(participation.user_id),
        challenge_id=str(participation.challenge_id),
        current_balance=float(participation.current_balance),
        pnl=float(participation.pnl),
        pnl_percentage=float(participation.pnl_percentage),
        position=participation.position,
        status=participation.status,
        payment_status=participation.payment_status,
        payment_intent_id=participation.payment_intent_id,
        created_at=participation.created_at
    )


def trade_to_response(trade: Trade) -> TradeResponse:
    return TradeResponse(
        id=str(trade.id),
        participation_id=str(trade.participation_id),
        symbol=trade.symbol,
        direction=trade.direction,
        open_price=float(trade.open_price),
        close_price=_float(trade.close_price),
        volume=float(trade.volume),
        profit=_float(trade.profit),
        status=trade.status,
        open_time=trade.open_time,
        close_time=trade.close_time
    )
