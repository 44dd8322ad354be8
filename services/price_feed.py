"""시뮬레이션 시세 피드

기준가에서 출발하는 랜덤 워크로 참고용 시세를 만든다.
거래 엔진은 이 값을 사용하지 않는다 (체결 가격은 클라이언트가 지정).
"""
import random
from typing import Optional

from config import settings
from database import utcnow

# 틱당 최대 변동률
MAX_TICK_MOVE = 0.0005


class PriceSimulator:
    """종목별 랜덤 워크 시세 생성기"""

    def __init__(self, symbols: dict, seed: Optional[int] = None):
        self._random = random.Random(seed)
        self._symbols = symbols
        self._open = {symbol: float(info["price"]) for symbol, info in symbols.items()}
        self._prices = dict(self._open)
        self._updated_at = utcnow()

    def _decimals(self, symbol: str) -> int:
        multiplier = self._symbols[symbol]["pip_multiplier"]
        if multiplier >= 10000:
            return 5
        if multiplier >= 100:
            return 3
        return 2

    def tick(self) -> list[dict]:
        """모든 종목 가격을 한 단계 이동시키고 최신 시세 반환"""
        for symbol, price in self._prices.items():
            move = self._random.uniform(-MAX_TICK_MOVE, MAX_TICK_MOVE)
            self._prices[symbol] = round(price * (1 + move), self._decimals(symbol))
        self._updated_at = utcnow()
        return self.quotes()

    def price(self, symbol: str) -> Optional[float]:
        return self._prices.get(symbol)

    def quotes(self, type: Optional[str] = None) -> list[dict]:
        """최신 시세 (상품군 필터 선택)"""
        result = []
        for symbol, price in self._prices.items():
            instrument_type = self._symbols[symbol]["type"]
            if type and instrument_type != type:
                continue

            change = price - self._open[symbol]
            result.append({
                "symbol": symbol,
                "type": instrument_type,
                "price": price,
                "change": round(change, self._decimals(symbol)),
                "change_percent": round(change / self._open[symbol] * 100, 4),
                "timestamp": self._updated_at,
            })
        return result


# 전역 시뮬레이터
price_simulator = PriceSimulator(settings.SYMBOLS)
