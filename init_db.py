"""데이터베이스 초기화 스크립트

테이블을 생성하고 데모 챌린지를 등록한다 (이미 챌린지가 있으면 건너뜀).
"""
import asyncio
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select, func

from database import async_session, engine, init_db, utcnow
from models.challenge import Challenge

CHALLENGE_DURATION = timedelta(days=3)


def demo_challenges(now) -> list[Challenge]:
    """데모 챌린지 4개 (예정 3개, 진행 중 1개)"""
    seeds = [
        {
            "name": "FX Pro Challenge",
            "description": "Trade major currency pairs and grow your balance over three days.",
            "entry_fee": Decimal("25.00"),
            "start_time": now + timedelta(days=2),
            "prize_amount": Decimal("50000"),
            "max_participants": 50,
            "type": "forex",
            "status": "upcoming",
        },
        {
            "name": "Crypto Weekend Sprint",
            "description": "A fast-paced crypto challenge for volatile markets.",
            "entry_fee": Decimal("35.00"),
            "start_time": now + timedelta(hours=18),
            "prize_amount": Decimal("75000"),
            "max_participants": 30,
            "type": "crypto",
            "status": "upcoming",
        },
        {
            "name": "Stock Market Challenge",
            "description": "Pick your stocks and beat the other traders.",
            "entry_fee": Decimal("15.00"),
            "start_time": now + timedelta(days=3),
            "prize_amount": Decimal("25000"),
            "max_participants": 100,
            "type": "stocks",
            "status": "upcoming",
        },
        {
            "name": "Forex Masters Challenge",
            "description": "An invitation-sized forex challenge already in progress.",
            "entry_fee": Decimal("40.00"),
            "start_time": now - timedelta(days=2),
            "prize_amount": Decimal("50000"),
            "max_participants": 15,
            "type": "forex",
            "status": "active",
        },
    ]

    return [
        Challenge(
            end_time=seed["start_time"] + CHALLENGE_DURATION,
            initial_balance=Decimal("10000"),
            **seed
        )
        for seed in seeds
    ]


async def seed_challenges() -> int:
    """데모 챌린지 등록 (등록한 개수 반환)"""
    async with async_session() as db:
        result = await db.execute(select(func.count()).select_from(Challenge))
        if result.scalar():
            print("   Challenges already exist (skipping)")
            return 0

        challenges = demo_challenges(utcnow())
        db.add_all(challenges)
        await db.commit()
        print(f"   {len(challenges)} demo challenges created")
        return len(challenges)


async def main():
    print("=" * 50)
    print("Database Initialization")
    print("=" * 50)

    print("1. Creating tables...")
    await init_db()
    print("   Tables ready")

    print("2. Seeding demo challenges...")
    await seed_challenges()

    await engine.dispose()

    print("=" * 50)
    print("Done!")
    print("=" * 50)


if __name__ == "__main__":
    asyncio.run(main())
