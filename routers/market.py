"""시세 라우터"""
from typing import Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel

from fastapi import APIRouter, Query

from services.price_feed import price_simulator

router = APIRouter()


class QuoteResponse(BaseModel):
    """시세 응답 (참고용, 체결 가격은 클라이언트가 지정)"""
    symbol: str
    type: str
    price: float
    change: float
    change_percent: float
    timestamp: datetime


@router.get("/quotes", response_model=List[QuoteResponse])
async def get_quotes(
    type: Optional[Literal["forex", "crypto", "stocks"]] = Query(default=None)
):
    """최신 시뮬레이션 시세 조회"""
    return [QuoteResponse(**quote) for quote in price_simulator.quotes(type)]
