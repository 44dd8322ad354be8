"""서비스 패키지"""
from services.challenge_service import ChallengeService, update_challenge_statuses
from services.trade_engine import TradeEngine
from services.leaderboard import LeaderboardRanker
from services.payment_gate import PaymentGate, StripePaymentGate, get_payment_gate

__all__ = [
    "ChallengeService",
    "update_challenge_statuses",
    "TradeEngine",
    "LeaderboardRanker",
    "PaymentGate",
    "StripePaymentGate",
    "get_payment_gate",
]
