"""리더보드 순위 계산 서비스"""
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from errors import NotFound
from models.challenge import Challenge
from models.participation import Participation
from models.user import User

logger = logging.getLogger(__name__)


@dataclass
class LeaderboardEntry:
    """리더보드 항목"""
    position: int
    participation_id: UUID
    user_id: UUID
    username: str
    display_name: str
    current_balance: Decimal
    pnl: Decimal
    pnl_percentage: Decimal

    def to_dict(self) -> dict:
        return asdict(self)


class LeaderboardRanker:
    """챌린지 참가자 순위 계산

    정렬: current_balance 내림차순, 동률이면 먼저 참가한 순(created_at),
    그래도 같으면 participation id 순. 순위는 1부터 빈틈 없이 부여하고
    각 참가 기록의 position 컬럼에 저장한다. 같은 데이터로 다시 계산하면 같은 결과.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def rank(self, challenge_id: UUID) -> list[LeaderboardEntry]:
        result = await self.db.execute(
            select(Challenge.id).where(Challenge.id == challenge_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFound("Challenge not found")

        # 한 번의 조회로 잔고/손익 스냅샷 확보
        result = await self.db.execute(
            select(Participation, User)
            .outerjoin(User, Participation.user_id == User.id)
            .where(Participation.challenge_id == challenge_id)
            .order_by(
                Participation.current_balance.desc(),
                Participation.created_at.asc(),
                Participation.id.asc()
            )
        )
        rows = result.all()

        entries: list[LeaderboardEntry] = []
        for participation, user in rows:
            if user is None:
                logger.warning(
                    f"Skipping participation {participation.id}: user {participation.user_id} not found"
                )
                continue

            entries.append(LeaderboardEntry(
                position=len(entries) + 1,
                participation_id=participation.id,
                user_id=user.id,
                username=user.username,
                display_name=user.public_name,
                current_balance=participation.current_balance,
                pnl=participation.pnl,
                pnl_percentage=participation.pnl_percentage
            ))

        previous = {participation.id: participation.position for participation, _ in rows}

        try:
            # position 컬럼만 갱신 (잔고/손익은 건드리지 않음)
            for entry in entries:
                if previous.get(entry.participation_id) != entry.position:
                    await self.db.execute(
                        update(Participation)
                        .where(Participation.id == entry.participation_id)
                        .values(position=entry.position)
                    )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Leaderboard recomputed: challenge={challenge_id} participants={len(entries)}")
        return entries
