"""SQLAlchemy 모델"""
from models.user import User
from models.challenge import Challenge
from models.participation import Participation
from models.trade import Trade
from models.activity import Activity

__all__ = [
    "User",
    "Challenge",
    "Participation",
    "Trade",
    "Activity",
]
