"""
Shared fixtures.

Settings are read at import time, so the environment is prepared before any
turfbook module is imported. Database tests run against a throwaway SQLite
file per test so that separate sessions really are separate connections.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import UTC, date, datetime, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from turfbook.core.config import settings  # noqa: E402
from turfbook.models import Turf, TurfStatus, User, UserRole  # noqa: E402

# 2024-06-01 14:30 venue time
FIXED_NOW = datetime(2024, 6, 1, 14, 30)
TODAY = date(2024, 6, 1)
TOMORROW = date(2024, 6, 2)
YESTERDAY = date(2024, 5, 31)


def make_access_token(
    subject: int, expires_in: timedelta = timedelta(minutes=15), token_type: str = "access"
) -> str:
    """Token shaped like the ones the identity service issues."""
    claims = {"sub": str(subject), "exp": datetime.now(UTC) + expires_in, "type": token_type}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def turf() -> Turf:
    """A detached turf open 06:00-22:00 at 1500 per hour."""
    return Turf(
        id=1,
        owner_id=1,
        name="Green Arena",
        location="MG Road",
        city="bengaluru",
        price_per_hour=Decimal("1500.00"),
        opening_minute=6 * 60,
        closing_minute=22 * 60,
    )


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine for testing."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'turfbook.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest_asyncio.fixture
async def seeded(session_maker) -> dict[str, int]:
    """Owner, admin, two players, one listed turf (06:00-22:00, 1500/hr) and two unlisted ones."""
    async with session_maker() as s:
        owner = User(email="owner@example.com", full_name="Olivia Owner", role=UserRole.OWNER.value)
        player = User(email="player@example.com", full_name="Pat Player", role=UserRole.USER.value)
        other = User(email="other@example.com", full_name="Sam Other", role=UserRole.USER.value)
        admin = User(email="admin@example.com", full_name="Ada Admin", role=UserRole.ADMIN.value)
        s.add_all([owner, player, other, admin])
        await s.flush()
        turf = Turf(
            owner_id=owner.id,
            name="Green Arena",
            location="MG Road",
            city="bengaluru",
            price_per_hour=Decimal("1500.00"),
            opening_minute=6 * 60,
            closing_minute=22 * 60,
            status=TurfStatus.APPROVED.value,
        )
        closed = Turf(
            owner_id=owner.id,
            name="Closed Court",
            location="Ring Road",
            city="bengaluru",
            price_per_hour=Decimal("800.00"),
            opening_minute=6 * 60,
            closing_minute=22 * 60,
            is_active=False,
            status=TurfStatus.APPROVED.value,
        )
        pending = Turf(
            owner_id=owner.id,
            name="New Pitch",
            location="HSR Layout",
            city="bengaluru",
            price_per_hour=Decimal("1000.00"),
            opening_minute=6 * 60,
            closing_minute=22 * 60,
            status=TurfStatus.PENDING.value,
        )
        s.add_all([turf, closed, pending])
        await s.commit()
        return {
            "owner_id": owner.id,
            "player_id": player.id,
            "other_id": other.id,
            "admin_id": admin.id,
            "turf_id": turf.id,
            "closed_turf_id": closed.id,
            "pending_turf_id": pending.id,
        }
