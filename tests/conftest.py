"""
Общие фикстуры тестов движка отслеживания правок.
"""

from datetime import datetime, timedelta

import pytest

from trackedits.core.config import Settings
from trackedits.core.context import EngineContext
from trackedits.domains.changes.entities import Change, ChangeType, ChangeSource


class FakeClock:
    """Управляемые часы для таймеров простоя и снимков"""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        auto_save_interval=60_000,
        session_timeout=60_000,
        max_session_duration=60 * 60 * 1000,
        max_concurrent_sessions=5,
        proximity_threshold=100,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
    )


@pytest.fixture
def engine(settings, clock):
    return EngineContext(settings, clock=clock)


@pytest.fixture
def recorded_events(engine):
    """Все события движка в порядке публикации"""
    events = []
    engine.events.subscribe_all(events.append)
    return events


@pytest.fixture
def make_change(clock):
    """Фабрика правок; время создания берется из тестовых часов"""

    def factory(
        start: int,
        end: int,
        document_id: str = "doc-1",
        change_type: ChangeType = ChangeType.REPLACE,
        before: str = "old",
        after: str = "new",
        **kwargs
    ) -> Change:
        kwargs.setdefault("timestamp", clock())
        kwargs.setdefault("source", ChangeSource.MANUAL)
        return Change.create(document_id, change_type, start, end, before, after, **kwargs)

    return factory

