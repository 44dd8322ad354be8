"""모의 거래 엔진

포지션 진입(open)과 청산(close)을 처리한다. 참가자 잔고는 청산 정산에서만 변경되며,
거래 청산과 잔고 반영은 하나의 트랜잭션으로 커밋된다.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import utcnow
from errors import NotFound, Forbidden, InvalidState, ValidationError
from models.challenge import Challenge
from models.participation import Participation
from models.trade import Trade, TRADE_DIRECTIONS
from services.activity_service import record_activity

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# DB 컬럼 소수 자릿수와 일치해야 한다 (volume Numeric(20,4), 가격 Numeric(20,8))
VOLUME_STEP = Decimal("0.0001")
PRICE_STEP = Decimal("0.00000001")


def ensure_precision(name: str, value: Decimal, step: Decimal) -> None:
    """컬럼 자릿수를 넘는 값은 거부 (저장 시 반올림 방지)"""
    places = -step.as_tuple().exponent
    try:
        exact = value == value.quantize(step)
    except InvalidOperation:
        raise ValidationError(f"{name} is out of range")
    if not exact:
        raise ValidationError(f"{name} supports at most {places} decimal places")


def calculate_profit(direction: str, open_price: Decimal, close_price: Decimal, volume: Decimal, pip_multiplier: int) -> Decimal:
    """실현 손익 계산

    buy:  (close - open) * volume * pip_multiplier
    sell: (open - close) * volume * pip_multiplier
    """
    open_price = Decimal(str(open_price))
    close_price = Decimal(str(close_price))
    volume = Decimal(str(volume))

    if direction == "buy":
        diff = close_price - open_price
    elif direction == "sell":
        diff = open_price - close_price
    else:
        raise ValidationError(f"Unknown trade direction: {direction}")

    return (diff * volume * Decimal(pip_multiplier)).quantize(CENT, rounding=ROUND_HALF_UP)


class TradeEngine:
    """거래 진입/청산 처리"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_trade(self, trade_id: UUID) -> Trade:
        result = await self.db.execute(
            select(Trade).where(Trade.id == trade_id)
        )
        trade = result.scalar_one_or_none()

        if not trade:
            raise NotFound("Trade not found")

        return trade

    async def list_trades(self, participation_id: UUID) -> list[Trade]:
        result = await self.db.execute(
            select(Trade)
            .where(Trade.participation_id == participation_id)
            .order_by(Trade.open_time.desc())
        )
        return list(result.scalars().all())

    async def list_user_trades(self, user_id: UUID, limit: int = 100) -> list[Trade]:
        """사용자의 전체 참가 거래 내역 (최신순)"""
        result = await self.db.execute(
            select(Trade)
            .join(Participation, Trade.participation_id == Participation.id)
            .where(Participation.user_id == user_id)
            .order_by(Trade.open_time.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def open_trade(
        self,
        participation_id: UUID,
        symbol: str,
        direction: str,
        volume: Decimal,
        open_price: Decimal,
        user_id: Optional[UUID] = None
    ) -> Trade:
        """포지션 진입

        잔고는 변경하지 않는다 (미실현 손익은 저장하지 않음).

        Raises:
            NotFound: 참가 기록 없음
            Forbidden: 다른 사용자의 참가 기록 (user_id 지정 시)
            InvalidState: 종료된 참가
            ValidationError: 잘못된 방향/수량/가격/종목
        """
        if direction not in TRADE_DIRECTIONS:
            raise ValidationError("direction must be 'buy' or 'sell'")

        volume = Decimal(str(volume))
        open_price = Decimal(str(open_price))

        if volume <= 0:
            raise ValidationError("volume must be positive")
        if open_price <= 0:
            raise ValidationError("open_price must be positive")
        ensure_precision("volume", volume, VOLUME_STEP)
        ensure_precision("open_price", open_price, PRICE_STEP)
        if symbol not in settings.SYMBOLS:
            raise ValidationError(f"Unsupported symbol. Supported: {list(settings.SYMBOLS)}")

        result = await self.db.execute(
            select(Participation).where(Participation.id == participation_id)
        )
        participation = result.scalar_one_or_none()

        if not participation:
            raise NotFound("Participation not found")

        if user_id is not None and participation.user_id != user_id:
            raise Forbidden("You do not own this participation")

        if not participation.is_active:
            raise InvalidState("Participation is not active")

        trade = Trade(
            participation_id=participation.id,
            symbol=symbol,
            direction=direction,
            open_price=open_price,
            volume=volume,
            status="open",
            open_time=utcnow()
        )
        self.db.add(trade)

        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(trade)

        logger.info(f"Trade opened: {direction} {symbol} vol={volume} @ {open_price} participation={participation.id}")
        return trade

    async def close_trade(
        self,
        trade_id: UUID,
        close_price: Decimal,
        user_id: Optional[UUID] = None
    ) -> Trade:
        """포지션 청산 및 잔고 정산

        1. 거래 + 참가 + 챌린지를 잠금 조회 (FOR UPDATE)
        2. open 상태일 때만 closed 로 변경 (조건부 UPDATE, 0행이면 이미 청산됨)
        3. 참가 잔고를 DB 레벨에서 증가시키고 누적 손익을 갱신
        4. 두 변경을 함께 커밋 (실패 시 모두 롤백)

        Raises:
            NotFound: 거래/참가 기록 없음
            Forbidden: 다른 사용자의 거래 (user_id 지정 시)
            InvalidState: 이미 청산된 거래
            ValidationError: 잘못된 청산 가격
        """
        close_price = Decimal(str(close_price))
        if close_price <= 0:
            raise ValidationError("close_price must be positive")
        ensure_precision("close_price", close_price, PRICE_STEP)

        try:
            result = await self.db.execute(
                select(Trade, Participation, Challenge)
                .join(Participation, Trade.participation_id == Participation.id)
                .join(Challenge, Participation.challenge_id == Challenge.id)
                .where(Trade.id == trade_id)
                .with_for_update(of=Participation)
            )
            row = result.first()

            if not row:
                raise NotFound("Trade not found")

            trade, participation, challenge = row

            if user_id is not None and participation.user_id != user_id:
                raise Forbidden("You do not own this trade")

            if not trade.is_open:
                raise InvalidState("Trade is already closed")

            profit = calculate_profit(
                trade.direction,
                trade.open_price,
                close_price,
                trade.volume,
                settings.pip_multiplier(trade.symbol)
            )
            closed_at = utcnow()

            # open → closed 는 정확히 한 번만
            closed = await self.db.execute(
                update(Trade)
                .where(
                    Trade.id == trade.id,
                    Trade.status == "open"
                )
                .values(
                    close_price=close_price,
                    close_time=closed_at,
                    profit=profit,
                    status="closed"
                )
            )
            if closed.rowcount == 0:
                raise InvalidState("Trade is already closed (concurrent request detected)")

            # 잔고는 DB 레벨에서 원자적으로 증가, 손익은 챌린지 시작 잔고 기준 누적
            initial_balance = challenge.initial_balance
            new_balance = Participation.current_balance + profit
            await self.db.execute(
                update(Participation)
                .where(Participation.id == participation.id)
                .values(
                    current_balance=new_balance,
                    pnl=new_balance - initial_balance,
                    pnl_percentage=(new_balance - initial_balance) * 100 / initial_balance,
                    updated_at=closed_at
                )
                .execution_options(synchronize_session=False)
            )

            record_activity(
                self.db,
                user_id=participation.user_id,
                type="trade",
                description=f"Closed {trade.direction} {trade.symbol} with profit {profit}",
                metadata={
                    "tradeId": str(trade.id),
                    "challengeId": str(challenge.id),
                    "profit": str(profit)
                }
            )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(trade)
        await self.db.refresh(participation)

        logger.info(
            f"Trade closed: {trade.symbol} profit={profit} "
            f"participation={participation.id} balance={participation.current_balance}"
        )
        return trade
