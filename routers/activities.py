"""활동 기록 라우터"""
from typing import Optional, List, Any
from datetime import datetime
import json
from pydantic import BaseModel

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from middleware.auth import get_current_user
from services.activity_service import list_activities

router = APIRouter()


class ActivityResponse(BaseModel):
    """활동 응답"""
    id: str
    type: str
    description: str
    metadata: Optional[Any]
    created_at: datetime


@router.get("", response_model=List[ActivityResponse])
async def get_activities(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """내 활동 기록 (최신순)"""
    activities = await list_activities(db, user.id, limit=limit)

    return [
        ActivityResponse(
            id=str(activity.id),
            type=activity.type,
            description=activity.description,
            metadata=json.loads(activity.metadata_) if activity.metadata_ else None,
            created_at=activity.created_at
        )
        for activity in activities
    ]
