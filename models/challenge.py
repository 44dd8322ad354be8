"""챌린지 모델"""
import uuid
from decimal import Decimal
from sqlalchemy import Column, String, Text, DateTime, Integer, Numeric, Uuid
from sqlalchemy.orm import relationship, validates
from database import Base, utcnow

CHALLENGE_TYPES = ("forex", "crypto", "stocks")
CHALLENGE_STATUSES = ("upcoming", "active", "completed")


class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    entry_fee = Column(Numeric(12, 2), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    initial_balance = Column(Numeric(20, 2), nullable=False, default=Decimal("10000"))
    prize_amount = Column(Numeric(12, 2), nullable=False)
    max_participants = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)  # forex, crypto, stocks
    status = Column(String(20), nullable=False, default="upcoming")  # upcoming, active, completed
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # 관계 (역참조만, 소유하지 않음)
    participations = relationship("Participation", back_populates="challenge")

    @validates("type")
    def validate_type(self, key, value):
        if value not in CHALLENGE_TYPES:
            raise ValueError(f"Unknown challenge type: {value}")
        return value

    @validates("status")
    def validate_status(self, key, value):
        if value not in CHALLENGE_STATUSES:
            raise ValueError(f"Unknown challenge status: {value}")
        return value

    def __repr__(self):
        return f"<Challenge {self.name}>"

    def has_started(self, now) -> bool:
        """시작 시간이 지났는지 확인"""
        return self.start_time < now
