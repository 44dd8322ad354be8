"""활동 기록 모델 (append-only)"""
import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from database import Base, utcnow


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(30), nullable=False)  # challenge_join, challenge_win, trade
    description = Column(Text, nullable=False)
    metadata_ = Column("metadata", Text, nullable=True)  # JSON 문자열
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # 관계
    user = relationship("User", back_populates="activities")

    def __repr__(self):
        return f"<Activity {self.type} user={self.user_id}>"
