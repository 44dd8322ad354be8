"""챌린지 참가 모델"""
import uuid
from decimal import Decimal
from sqlalchemy import Column, String, DateTime, Integer, Numeric, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from database import Base, utcnow


class Participation(Base):
    __tablename__ = "participations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    challenge_id = Column(Uuid, ForeignKey("challenges.id"), nullable=False)
    current_balance = Column(Numeric(20, 2), nullable=False)
    pnl = Column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    pnl_percentage = Column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    position = Column(Integer, nullable=True)  # 리더보드 계산 전에는 NULL
    status = Column(String(20), nullable=False, default="active")  # active, completed
    payment_status = Column(String(20), nullable=False)  # pending, completed
    payment_intent_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # 유니크 제약: 사용자당 챌린지 1회 참가, 결제 확인 토큰 1회 사용
    __table_args__ = (
        UniqueConstraint('user_id', 'challenge_id', name='uq_participation_user_challenge'),
        UniqueConstraint('payment_intent_id', name='uq_participation_payment_intent'),
    )

    # 관계
    user = relationship("User", back_populates="participations")
    challenge = relationship("Challenge", back_populates="participations")
    trades = relationship("Trade", back_populates="participation", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Participation user={self.user_id} balance={self.current_balance}>"

    @property
    def is_active(self) -> bool:
        return self.status == "active"
