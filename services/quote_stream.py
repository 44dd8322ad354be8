"""시세 WebSocket 구독 관리

클라이언트별 구독 종목을 관리하고 틱마다 해당 종목 시세만 전송한다.
구독 목록이 비어 있으면 전체 종목을 받는다.
"""
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

SUBSCRIBE_USAGE = "subscribe must be \"all\", a symbol, or a list of symbols"


class QuoteHub:
    """WebSocket 클라이언트 → 구독 종목 집합"""

    def __init__(self):
        self._subscribers: dict[WebSocket, set[str]] = {}
        self.messages_sent = 0

    def __len__(self) -> int:
        return len(self._subscribers)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._subscribers[websocket] = set()
        logger.info(f"Quote client connected. Total: {len(self)}")

    def disconnect(self, websocket: WebSocket) -> None:
        if self._subscribers.pop(websocket, None) is not None:
            logger.info(f"Quote client disconnected. Total: {len(self)}")

    def subscribe(self, websocket: WebSocket, request) -> dict:
        """구독 요청 처리

        {"subscribe": "all"} 또는 {"subscribe": ["EUR/USD", ...]}
        """
        if request == "all":
            self._subscribers[websocket] = set()
            return {"status": "subscribed", "symbols": "all"}

        if isinstance(request, str):
            request = [request]
        if not isinstance(request, list) or not all(isinstance(symbol, str) for symbol in request):
            # 기존 구독은 유지
            return {"error": SUBSCRIBE_USAGE}
        symbols = set(request)
        self._subscribers[websocket] = symbols
        return {"status": "subscribed", "symbols": sorted(symbols)}

    def wants(self, websocket: WebSocket, symbol: str) -> bool:
        symbols = self._subscribers.get(websocket)
        return symbols is not None and (not symbols or symbol in symbols)

    async def publish(self, quotes: list[dict]) -> None:
        """틱 시세를 구독자에게 전송 (끊긴 연결은 정리)"""
        stale = []
        for websocket in list(self._subscribers):
            try:
                for quote in quotes:
                    if self.wants(websocket, quote["symbol"]):
                        await websocket.send_text(json.dumps(quote, default=str))
                        self.messages_sent += 1
            except (WebSocketDisconnect, RuntimeError):
                stale.append(websocket)

        for websocket in stale:
            self.disconnect(websocket)


quote_hub = QuoteHub()
