"""결제 게이트 (Stripe PaymentIntent)

챌린지 참가비 결제는 외부 결제사에 위임한다. 이 모듈은 카드 정보를 다루지 않고,
결제사가 돌려준 PaymentIntent 식별자와 client secret만 주고받는다.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Optional

import stripe

from config import settings
from errors import PaymentGateError, PaymentInvalid

logger = logging.getLogger(__name__)

# 결제 완료(또는 승인 완료)로 인정하는 PaymentIntent 상태
CONFIRMED_STATUSES = ("succeeded", "requires_capture")


def to_minor_units(amount: Decimal) -> int:
    """통화 금액을 최소 단위(센트)로 변환"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class PaymentAuthorization:
    """결제 승인 결과"""
    payment_intent_id: str
    client_secret: Optional[str]
    amount: int  # 최소 단위 (센트)
    currency: str
    status: str
    metadata: dict = field(default_factory=dict)

    @property
    def is_confirmed(self) -> bool:
        return self.status in CONFIRMED_STATUSES


class PaymentGate:
    """결제 게이트 인터페이스"""

    async def authorize(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict,
        idempotency_key: Optional[str] = None
    ) -> PaymentAuthorization:
        raise NotImplementedError

    async def retrieve(self, payment_intent_id: str) -> PaymentAuthorization:
        raise NotImplementedError

    async def verify(
        self,
        payment_intent_id: str,
        user_id,
        challenge_id,
        amount: Decimal
    ) -> PaymentAuthorization:
        """결제 확인 토큰이 (사용자, 챌린지, 금액) 조합에 대해 유효한지 검증

        Raises:
            PaymentInvalid: 토큰이 없거나, 미결제이거나, 다른 참가 건의 토큰인 경우
            PaymentGateError: 결제사 호출 실패
        """
        payment = await self.retrieve(payment_intent_id)

        if not payment.is_confirmed:
            raise PaymentInvalid(f"Payment has not been completed (status: {payment.status})")

        if payment.metadata.get("userId") != str(user_id) or payment.metadata.get("challengeId") != str(challenge_id):
            raise PaymentInvalid("Payment was authorized for a different user or challenge")

        if payment.amount != to_minor_units(amount):
            raise PaymentInvalid("Payment amount does not match the challenge entry fee")

        return payment


class StripePaymentGate(PaymentGate):
    """Stripe PaymentIntent 기반 결제 게이트

    stripe 클라이언트는 동기 호출이므로 워커 스레드에서 실행하고,
    PAYMENT_TIMEOUT 초를 넘기면 PaymentGateError로 실패한다. 재시도하지 않는다.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.timeout = timeout or settings.PAYMENT_TIMEOUT
        if not self.api_key:
            logger.warning("Missing STRIPE_SECRET_KEY - payment calls will be rejected by Stripe")

    async def _call(self, func, **kwargs):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, api_key=self.api_key, **kwargs),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"Stripe call timed out after {self.timeout}s")
            raise PaymentGateError("Payment provider timed out")

    async def authorize(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict,
        idempotency_key: Optional[str] = None
    ) -> PaymentAuthorization:
        try:
            intent = await self._call(
                stripe.PaymentIntent.create,
                amount=to_minor_units(amount),
                currency=currency,
                metadata=metadata,
                idempotency_key=idempotency_key
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe PaymentIntent create failed: {e}")
            raise PaymentGateError(getattr(e, "user_message", None) or "Payment provider rejected the request")

        return self._to_authorization(intent)

    async def retrieve(self, payment_intent_id: str) -> PaymentAuthorization:
        try:
            intent = await self._call(stripe.PaymentIntent.retrieve, id=payment_intent_id)
        except stripe.InvalidRequestError:
            raise PaymentInvalid("Unknown payment confirmation")
        except stripe.StripeError as e:
            logger.error(f"Stripe PaymentIntent retrieve failed: {e}")
            raise PaymentGateError("Payment provider rejected the request")

        return self._to_authorization(intent)

    @staticmethod
    def _to_authorization(intent) -> PaymentAuthorization:
        return PaymentAuthorization(
            payment_intent_id=intent["id"],
            client_secret=intent.get("client_secret"),
            amount=intent["amount"],
            currency=intent["currency"],
            status=intent["status"],
            metadata=dict(intent.get("metadata") or {}),
        )


@lru_cache(maxsize=1)
def get_payment_gate() -> PaymentGate:
    """FastAPI 의존성 주입용 결제 게이트"""
    return StripePaymentGate()
