"""활동 기록 서비스"""
import json
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.activity import Activity

ACTIVITY_TYPES = ("challenge_join", "challenge_win", "trade")


def record_activity(
    db: AsyncSession,
    user_id: UUID,
    type: str,
    description: str,
    metadata: Optional[dict] = None
) -> Activity:
    """활동 기록 추가 (커밋은 호출자 트랜잭션에서 수행)"""
    if type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {type}")

    activity = Activity(
        user_id=user_id,
        type=type,
        description=description,
        metadata_=json.dumps(metadata, default=str) if metadata is not None else None
    )
    db.add(activity)
    return activity


async def list_activities(db: AsyncSession, user_id: UUID, limit: Optional[int] = None) -> list[Activity]:
    """사용자 활동 조회 (최신순)"""
    query = (
        select(Activity)
        .where(Activity.user_id == user_id)
        .order_by(Activity.created_at.desc())
    )
    if limit:
        query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
