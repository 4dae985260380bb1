"""Shared pytest fixtures for the FitStake oracle.

Environment is configured before any ``src`` import so that the cached
settings pick up the test oracle identity and the in-memory ledger.
"""

import os

os.environ["ORACLE_ADDRESS"] = "0x00000000000000000000000000000000000000aa"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["LEDGER_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "local"
os.environ["LOG_LEVEL"] = "WARNING"

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import src.challenges.models  # noqa: E402,F401 - registers tables on Base
from src.challenges.ledger import InMemoryLedger  # noqa: E402
from src.challenges.schemas import ChallengeSchema  # noqa: E402
from src.core.database import Base  # noqa: E402
from src.oracle.authorizer import CompletionAuthorizer  # noqa: E402
from src.oracle.config import OracleConfig  # noqa: E402
from src.verification.schemas import ChallengeCriteria  # noqa: E402
from tests.helpers import ALICE, ORACLE, STAKE, T0, WEEK, challenge_input  # noqa: E402

# ===========================================
# VERIFICATION FIXTURES
# ===========================================


@pytest.fixture
def criteria() -> ChallengeCriteria:
    """5 km run challenge over [T0, T0 + 7 days]."""
    return ChallengeCriteria(
        challenge_id=1,
        target_distance=5000,
        start_time=T0,
        end_time=T0 + WEEK,
        required_activity_type="Run",
    )


# ===========================================
# LEDGER AND ORACLE FIXTURES
# ===========================================


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def oracle_config() -> OracleConfig:
    return OracleConfig(oracle_address=ORACLE, scope="test-scope")


@pytest.fixture
def authorizer(oracle_config: OracleConfig, ledger: InMemoryLedger) -> CompletionAuthorizer:
    return CompletionAuthorizer(oracle_config, ledger)


@pytest_asyncio.fixture
async def joined_challenge(ledger: InMemoryLedger) -> ChallengeSchema:
    """Challenge 1 over [T0, T0 + 7 days] with ALICE joined."""
    challenge = await ledger.create_challenge(challenge_input(), now=T0)
    await ledger.join(challenge.challenge_id, ALICE, STAKE)
    return challenge


# ===========================================
# DATABASE FIXTURES
# ===========================================


@pytest_asyncio.fixture
async def session_maker() -> AsyncGenerator[async_sessionmaker, None]:
    """In-memory SQLite database with the ledger schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()
