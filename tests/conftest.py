"""Test configuration and fixtures."""
from collections.abc import AsyncGenerator
from datetime import timedelta
from decimal import Decimal
from itertools import count
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api import app
from database import Base, get_db, utcnow
from errors import PaymentInvalid
from middleware.auth import create_access_token, hash_password
from models import User, Challenge, Participation
from services.payment_gate import PaymentGate, PaymentAuthorization, get_payment_gate, to_minor_units

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

_password_hash = hash_password("testpassword123")


class FakePaymentGate(PaymentGate):
    """In-memory payment gate that records every authorisation."""

    def __init__(self) -> None:
        self.intents: dict[str, PaymentAuthorization] = {}
        self.authorizations: list[PaymentAuthorization] = []
        self._ids = count(1)

    def add_intent(
        self,
        user_id,
        challenge_id,
        amount: Decimal,
        status: str = "succeeded",
    ) -> str:
        """Register a payment intent directly, without counting it as a charge."""
        payment_intent_id = f"pi_test_{next(self._ids)}"
        self.intents[payment_intent_id] = PaymentAuthorization(
            payment_intent_id=payment_intent_id,
            client_secret=f"{payment_intent_id}_secret",
            amount=to_minor_units(amount),
            currency="usd",
            status=status,
            metadata={"userId": str(user_id), "challengeId": str(challenge_id)},
        )
        return payment_intent_id

    async def authorize(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict,
        idempotency_key: Optional[str] = None,
    ) -> PaymentAuthorization:
        payment_intent_id = self.add_intent(metadata["userId"], metadata["challengeId"], amount)
        authorization = self.intents[payment_intent_id]
        self.authorizations.append(authorization)
        return authorization

    async def retrieve(self, payment_intent_id: str) -> PaymentAuthorization:
        if payment_intent_id not in self.intents:
            raise PaymentInvalid("Unknown payment confirmation")
        return self.intents[payment_intent_id]


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def payment_gate() -> FakePaymentGate:
    return FakePaymentGate()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, payment_gate: FakePaymentGate) -> AsyncGenerator[AsyncClient, None]:
    """Test client with database and payment gate overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gate] = lambda: payment_gate

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(db: AsyncSession, username: str = "trader", **kwargs) -> User:
    user = User(
        username=username,
        email=kwargs.pop("email", f"{username}@example.com"),
        password=_password_hash,
        **kwargs,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_challenge(
    db: AsyncSession,
    starts_in: timedelta = timedelta(days=1),
    duration: timedelta = timedelta(days=3),
    **kwargs,
) -> Challenge:
    start_time = utcnow() + starts_in
    values = {
        "name": "FX Pro Challenge",
        "description": "Test challenge",
        "entry_fee": Decimal("25.00"),
        "initial_balance": Decimal("10000"),
        "prize_amount": Decimal("50000"),
        "max_participants": 50,
        "type": "forex",
        "status": "upcoming" if starts_in > timedelta(0) else "active",
    }
    values.update(kwargs)
    challenge = Challenge(start_time=start_time, end_time=start_time + duration, **values)
    db.add(challenge)
    await db.commit()
    await db.refresh(challenge)
    return challenge


async def create_participation(
    db: AsyncSession,
    user: User,
    challenge: Challenge,
    balance: Optional[Decimal] = None,
    **kwargs,
) -> Participation:
    """Insert a participation directly, bypassing the payment flow."""
    current_balance = Decimal(balance) if balance is not None else challenge.initial_balance
    pnl = current_balance - challenge.initial_balance
    participation = Participation(
        user_id=user.id,
        challenge_id=challenge.id,
        current_balance=current_balance,
        pnl=pnl,
        pnl_percentage=pnl * 100 / challenge.initial_balance,
        status=kwargs.pop("status", "active"),
        payment_status="completed",
        payment_intent_id=kwargs.pop("payment_intent_id", None),
        **kwargs,
    )
    db.add(participation)
    await db.commit()
    await db.refresh(participation)
    return participation


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
