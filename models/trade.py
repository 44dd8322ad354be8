"""거래 모델"""
import uuid
from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from database import Base, utcnow

TRADE_DIRECTIONS = ("buy", "sell")


class Trade(Base):
    __tablename__ = "trades"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    participation_id = Column(Uuid, ForeignKey("participations.id", ondelete="CASCADE"), nullable=False)
    symbol = Column(String(20), nullable=False)
    direction = Column(String(10), nullable=False)  # buy, sell
    open_price = Column(Numeric(20, 8), nullable=False)
    close_price = Column(Numeric(20, 8), nullable=True)
    volume = Column(Numeric(20, 4), nullable=False)
    profit = Column(Numeric(20, 2), nullable=True)  # 실현 손익
    status = Column(String(10), nullable=False, default="open")  # open, closed
    open_time = Column(DateTime, default=utcnow, nullable=False)
    close_time = Column(DateTime, nullable=True)

    # 관계
    participation = relationship("Participation", back_populates="trades")

    def __repr__(self):
        return f"<Trade {self.direction} {self.symbol} @ {self.open_price} status={self.status}>"

    @property
    def is_open(self) -> bool:
        return self.status == "open"
