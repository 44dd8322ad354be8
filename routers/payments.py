"""결제 라우터"""
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from middleware.auth import get_current_user
from services.challenge_service import ChallengeService
from services.payment_gate import PaymentGate, get_payment_gate

router = APIRouter()


class PaymentIntentCreate(BaseModel):
    """결제 승인 요청"""
    challenge_id: UUID


class PaymentIntentResponse(BaseModel):
    """결제 승인 응답 (카드 정보 없이 확인 토큰만 전달)"""
    payment_intent_id: str
    client_secret: Optional[str]
    amount: int
    currency: str


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: PaymentIntentCreate,
    user: User = Depends(get_current_user),
    payment_gate: PaymentGate = Depends(get_payment_gate),
    db: AsyncSession = Depends(get_db)
):
    """챌린지 참가비 결제 승인 생성

    이미 참가했거나 시작된 챌린지에는 결제를 만들지 않는다.
    """
    service = ChallengeService(db, payment_gate)
    authorization = await service.authorize_payment(user.id, request.challenge_id)

    return PaymentIntentResponse(
        payment_intent_id=authorization.payment_intent_id,
        client_secret=authorization.client_secret,
        amount=authorization.amount,
        currency=authorization.currency
    )
