"""챌린지 참가 라이프사이클 서비스"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import utcnow
from errors import NotFound, Forbidden, ChallengeAlreadyStarted, ChallengeFull, AlreadyJoined, AlreadyExists, ValidationError
from models.challenge import Challenge, CHALLENGE_STATUSES
from models.participation import Participation
from services.activity_service import record_activity
from services.leaderboard import LeaderboardRanker
from services.payment_gate import PaymentGate, PaymentAuthorization

logger = logging.getLogger(__name__)


class ChallengeService:
    """챌린지 조회 및 참가 처리 서비스"""

    def __init__(self, db: AsyncSession, payment_gate: Optional[PaymentGate] = None):
        self.db = db
        self.payment_gate = payment_gate

    # ============ 조회 ============

    async def list_challenges(self, status: Optional[str] = None) -> list[Challenge]:
        """챌린지 목록 조회 (시작 시간순)"""
        if status and status not in CHALLENGE_STATUSES:
            raise ValidationError(f"status must be one of {list(CHALLENGE_STATUSES)}")

        query = select(Challenge)
        if status:
            query = query.where(Challenge.status == status)
        query = query.order_by(Challenge.start_time)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_challenge(self, challenge_id: UUID) -> Challenge:
        result = await self.db.execute(
            select(Challenge).where(Challenge.id == challenge_id)
        )
        challenge = result.scalar_one_or_none()

        if not challenge:
            raise NotFound("Challenge not found")

        return challenge

    async def count_participants(self, challenge_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Participation).where(
                Participation.challenge_id == challenge_id
            )
        )
        return result.scalar() or 0

    async def get_participation_for(self, user_id: UUID, challenge_id: UUID) -> Optional[Participation]:
        result = await self.db.execute(
            select(Participation).where(
                Participation.user_id == user_id,
                Participation.challenge_id == challenge_id
            )
        )
        return result.scalar_one_or_none()

    async def list_participations(self, user_id: UUID, active_only: bool = False) -> list[tuple[Participation, Challenge]]:
        """사용자 참가 목록 (챌린지 정보 포함)"""
        query = (
            select(Participation, Challenge)
            .join(Challenge, Participation.challenge_id == Challenge.id)
            .where(Participation.user_id == user_id)
        )
        if active_only:
            query = query.where(Participation.status == "active")
        query = query.order_by(Participation.created_at.desc())

        result = await self.db.execute(query)
        return [(participation, challenge) for participation, challenge in result.all()]

    async def get_owned_participation(self, participation_id: UUID, user_id: UUID) -> Participation:
        """본인 소유 참가 조회

        Raises:
            NotFound: 참가 기록 없음
            Forbidden: 다른 사용자의 참가 기록
        """
        result = await self.db.execute(
            select(Participation).where(Participation.id == participation_id)
        )
        participation = result.scalar_one_or_none()

        if not participation:
            raise NotFound("Participation not found")

        if participation.user_id != user_id:
            raise Forbidden("You do not own this participation")

        return participation

    # ============ 참가 ============

    async def _ensure_joinable(self, challenge: Challenge, user_id: UUID) -> None:
        """참가 가능 여부 검증 (시작 전, 미참가, 정원 미달)"""
        if challenge.has_started(utcnow()):
            raise ChallengeAlreadyStarted()

        if await self.get_participation_for(user_id, challenge.id):
            raise AlreadyJoined()

        if await self.count_participants(challenge.id) >= challenge.max_participants:
            raise ChallengeFull()

    async def authorize_payment(self, user_id: UUID, challenge_id: UUID) -> PaymentAuthorization:
        """참가비 결제 승인 요청

        참가가 불가능한 챌린지에는 결제를 생성하지 않는다.
        결제사 실패는 PaymentGateError로 그대로 전달하며 재시도하지 않는다.
        """
        challenge = await self.get_challenge(challenge_id)
        await self._ensure_joinable(challenge, user_id)

        authorization = await self.payment_gate.authorize(
            amount=challenge.entry_fee,
            currency=settings.PAYMENT_CURRENCY,
            metadata={
                "userId": str(user_id),
                "challengeId": str(challenge.id)
            },
            idempotency_key=f"challenge-entry:{challenge.id}:{user_id}"
        )

        logger.info(
            f"Payment authorized: user={user_id} challenge={challenge.id} "
            f"intent={authorization.payment_intent_id}"
        )
        return authorization

    async def join(self, user_id: UUID, challenge_id: UUID, payment_intent_id: str) -> Participation:
        """챌린지 참가

        결제 확인 후 참가 기록과 challenge_join 활동을 한 트랜잭션으로 생성한다.

        Raises:
            NotFound, ChallengeAlreadyStarted, AlreadyJoined, AlreadyExists,
            ChallengeFull, PaymentInvalid, PaymentGateError
        """
        challenge = await self.get_challenge(challenge_id)
        await self._ensure_joinable(challenge, user_id)

        # 이미 사용된 결제 확인 토큰 재사용 차단
        result = await self.db.execute(
            select(Participation.id).where(Participation.payment_intent_id == payment_intent_id)
        )
        if result.first():
            raise AlreadyExists("This payment confirmation has already been used")

        payment = await self.payment_gate.verify(
            payment_intent_id,
            user_id=user_id,
            challenge_id=challenge.id,
            amount=challenge.entry_fee
        )

        participation = Participation(
            user_id=user_id,
            challenge_id=challenge.id,
            current_balance=challenge.initial_balance,
            pnl=0,
            pnl_percentage=0,
            position=None,
            status="active",
            payment_status="completed",
            payment_intent_id=payment.payment_intent_id
        )
        self.db.add(participation)

        record_activity(
            self.db,
            user_id=user_id,
            type="challenge_join",
            description=f'You joined "{challenge.name}" challenge',
            metadata={"challengeId": str(challenge.id)}
        )

        try:
            await self.db.commit()
        except IntegrityError as e:
            # 동시 요청: 어느 유니크 제약이 위반됐는지에 따라 구분
            await self.db.rollback()
            if "payment_intent" in str(e.orig):
                raise AlreadyExists("This payment confirmation has already been used")
            raise AlreadyJoined()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(participation)

        logger.info(f"Participation created: user={user_id} challenge={challenge.id} id={participation.id}")
        return participation


async def update_challenge_statuses(db: AsyncSession) -> dict:
    """챌린지 상태 자동 업데이트

    - upcoming + start_time 지남 → active
    - active + end_time 지남 → completed (참가 기록도 completed, 최종 순위 계산)

    Returns:
        dict: {"activated": n, "completed": n}
    """
    now = utcnow()

    activated = await db.execute(
        update(Challenge)
        .where(
            Challenge.status == "upcoming",
            Challenge.start_time <= now
        )
        .values(status="active")
    )

    result = await db.execute(
        select(Challenge).where(
            Challenge.status == "active",
            Challenge.end_time < now
        )
    )
    ending = list(result.scalars().all())

    for challenge in ending:
        challenge.status = "completed"
        await db.execute(
            update(Participation)
            .where(Participation.challenge_id == challenge.id)
            .values(status="completed")
        )

    await db.commit()

    ranker = LeaderboardRanker(db)
    for challenge in ending:
        standings = await ranker.rank(challenge.id)
        if standings:
            winner = standings[0]
            record_activity(
                db,
                user_id=winner.user_id,
                type="challenge_win",
                description=f'You finished 1st in "{challenge.name}"',
                metadata={"challengeId": str(challenge.id), "finalBalance": str(winner.current_balance)}
            )
            await db.commit()
        logger.info(f"Challenge completed: {challenge.name} ({len(standings)} ranked)")

    if activated.rowcount:
        logger.info(f"Challenges activated: {activated.rowcount}")

    return {"activated": activated.rowcount or 0, "completed": len(ending)}
