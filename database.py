"""데이터베이스 연결 모듈

모든 DateTime 컬럼은 naive UTC로 저장한다 (utcnow 사용).
"""
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from config import settings


def build_engine(url: str) -> AsyncEngine:
    """URL에 맞는 비동기 엔진 생성

    PostgreSQL(asyncpg)에서는 커넥션 풀과 쿼리 타임아웃을 설정한다.
    """
    if not url.startswith("postgresql+asyncpg"):
        return create_async_engine(url, echo=False)

    return create_async_engine(
        url,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=1800,  # stale 연결 방지
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "jit": "off",
                "statement_timeout": str(settings.DB_STATEMENT_TIMEOUT_MS),
            },
            "command_timeout": settings.DB_STATEMENT_TIMEOUT_MS / 1000,
        },
    )


engine = build_engine(settings.POSTGRES_URL)

# expire_on_commit=False: 커밋 후에도 응답 변환에서 속성 접근 가능
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


def utcnow() -> datetime:
    """naive UTC 현재 시각"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def get_db() -> AsyncSession:
    """FastAPI 의존성 주입용 DB 세션 (요청당 하나)"""
    async with async_session() as session:
        yield session


async def init_db():
    """테이블 생성"""
    import models  # noqa: F401  모델 등록

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
