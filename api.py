"""트레이딩 챌린지 API 서버"""
import json
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from config import settings
from database import engine, async_session
from routers import (
    auth_router,
    challenges_router,
    participations_router,
    trades_router,
    payments_router,
    activities_router,
    market_router,
)
from middleware.error_handlers import register_error_handlers
from services.challenge_service import update_challenge_statuses
from services.price_feed import price_simulator
from services.quote_stream import quote_hub
from cache import init_cache

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

database_ready = False


async def run_periodically(name: str, interval: float, job):
    """interval 초마다 job 실행 (실패는 로그만 남기고 계속)"""
    while True:
        await asyncio.sleep(interval)
        try:
            await job()
        except Exception:
            logger.exception(f"Background job '{name}' failed")


async def sweep_challenge_statuses():
    async with async_session() as db:
        await update_challenge_statuses(db)


async def publish_quotes():
    await quote_hub.publish(price_simulator.tick())


@asynccontextmanager
async def lifespan(app: FastAPI):
    global database_ready

    redis_cache = await init_cache()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        database_ready = True
        logger.info("Database connected")
    except Exception as e:
        database_ready = False
        logger.error(f"Database connection failed: {e}")

    tasks = [
        asyncio.create_task(run_periodically("quotes", settings.PRICE_TICK_INTERVAL, publish_quotes))
    ]
    if database_ready:
        tasks.append(asyncio.create_task(
            run_periodically("challenge-status", settings.STATUS_UPDATE_INTERVAL, sweep_challenge_statuses)
        ))
        logger.info(f"Challenge status sweep every {settings.STATUS_UPDATE_INTERVAL}s")

    yield

    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    await redis_cache.close()
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Trading Challenge API",
    description="유료 참가 모의 트레이딩 챌린지 API",
    lifespan=lifespan,
    docs_url="/swagger",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth_router, prefix="/api", tags=["auth"])
app.include_router(payments_router, prefix="/api", tags=["payments"])
app.include_router(challenges_router, prefix="/api/challenges", tags=["challenges"])
app.include_router(participations_router, prefix="/api/participations", tags=["participations"])
app.include_router(trades_router, prefix="/api/trades", tags=["trades"])
app.include_router(activities_router, prefix="/api/activities", tags=["activities"])
app.include_router(market_router, prefix="/api/market", tags=["market"])


@app.get("/api")
async def api_info():
    """서버 상태"""
    return {
        "name": "Trading Challenge API",
        "database": database_ready,
        "symbols": list(settings.SYMBOLS),
        "quote_clients": len(quote_hub),
        "quote_messages_sent": quote_hub.messages_sent,
    }


@app.websocket("/ws")
async def quotes_websocket(websocket: WebSocket):
    """
    시뮬레이션 시세 스트림

    연결 후 구독 메시지 전송:
    {"subscribe": ["EUR/USD", "BTC/USD"]} 또는 {"subscribe": "all"}
    """
    await quote_hub.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"error": "Invalid JSON"})
                continue

            if isinstance(message, dict) and "subscribe" in message:
                await websocket.send_json(quote_hub.subscribe(websocket, message["subscribe"]))
            else:
                await websocket.send_json({"error": "Expected {\"subscribe\": [...]}"})
    except WebSocketDisconnect:
        pass
    finally:
        quote_hub.disconnect(websocket)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
