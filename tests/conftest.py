"""
Test Suite Configuration
"""
from datetime import date, datetime, timedelta
from typing import Any, AsyncGenerator, Callable, Dict, List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from surface_analytics.analytics.events import SessionEvent
from surface_analytics.config import Settings
from surface_analytics.database.models import Base

IPAD_UA = "Mozilla/5.0 (iPad; CPU OS 14_0 like Mac OS X) AppleWebKit/605.1.15"
IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) Mobile/15E148"
WINDOWS_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0"


def click_token(rank: int, public_id: str) -> str:
    return f"result_opened_of_current_index_{rank}_result_index_{rank + 3}_public_id_{public_id}"


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
def today() -> date:
    """Fixed reference date for report windows"""
    return date(2024, 3, 31)


@pytest.fixture
def make_event() -> Callable[..., SessionEvent]:
    """Factory building events from camelCase document fields"""
    counter = {"n": 0}

    def _make(**fields: Any) -> SessionEvent:
        counter["n"] += 1
        document: Dict[str, Any] = {
            "sessionId": f"s-{counter['n']}",
            "userId": "user-1",
            "createdAt": "2024-03-20T10:00:00Z",
        }
        document.update(fields)
        return SessionEvent.from_document(document)

    return _make


@pytest.fixture
def sample_events(make_event) -> List[SessionEvent]:
    """Small mixed dataset inside March 2024"""
    return [
        make_event(
            userId="u1",
            createdAt="2024-03-18T09:15:00Z",
            classification="Carpet",
            deviceType="mobile",
            userLocation={"state": "Texas", "city": "Austin"},
            searchResults=[{"sku": "SKU-1"}, {"sku": "SKU-2"}, {"sku": "SKU-3"}],
            userActions=[
                {"action": click_token(0, "PUB-1"), "timestamp": "2024-03-18T09:16:00Z"},
                {"action": "link_copied", "timestamp": "2024-03-18T09:17:00Z"},
            ],
            userImage="https://img.example.com/1.jpg",
        ),
        make_event(
            userId="u1",
            createdAt="2024-03-25T14:00:00Z",
            classification="hard-surface",
            deviceInfo=IPAD_UA,
            userLocation={"state": "Texas", "city": "Dallas"},
            searchResults=[{"sku": "SKU-2"}, {"sku": "SKU-1"}],
            userActions=[
                click_token(1, "PUB-1"),
                "summary_downloaded",
                "result_opened",
            ],
        ),
        make_event(
            userId="u2",
            createdAt="2024-03-25T20:30:00Z",
            classification="both",
            deviceType="unknown",
            deviceInfo=WINDOWS_UA,
            userLocation={"state": "Ohio", "city": "Columbus"},
            searchResults=["SKU-3"],
            userActions=[click_token(4, "PUB-3"), "result_shared_on_mail"],
        ),
        make_event(
            userId=None,
            createdAt="2024-03-26T08:00:00Z",
            classification="carpet",
            deviceType="desktop",
            userActions=[click_token(0, "PUB-1")],
        ),
    ]


@pytest.fixture
def daily_history(make_event) -> Callable[[str, datetime, List[int]], List[SessionEvent]]:
    """Build one user's sessions at the given day offsets"""
    def _history(user_id: str, start: datetime, offsets: List[int]) -> List[SessionEvent]:
        return [
            make_event(userId=user_id, createdAt=(start + timedelta(days=d)).isoformat())
            for d in offsets
        ]
    return _history


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create an in-memory database session"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()
