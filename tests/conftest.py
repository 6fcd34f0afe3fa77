"""Shared pytest fixtures for the stat_keeper test suite."""

import datetime
import logging

import pytest

from stat_keeper.storage import KeyValueStore
from stat_keeper.character_store import CharacterStore
from stat_keeper.decay_scheduler import DecayScheduler


START = datetime.datetime(2026, 1, 5, 9, 0, tzinfo=datetime.timezone.utc)


class FakeClock:
    def __init__(self, start: datetime.datetime = START):
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> datetime.datetime:
        self.now += datetime.timedelta(**kwargs)
        return self.now


class FakeRoot:
    """Stands in for a Tk root: records ``after`` callbacks instead of running a loop."""

    def __init__(self):
        self.pending: dict[str, tuple[int, object]] = {}
        self.cancelled: list[str] = []
        self._counter = 0

    def after(self, ms, fn):
        self._counter += 1
        after_id = f"after#{self._counter}"
        self.pending[after_id] = (ms, fn)
        return after_id

    def after_cancel(self, after_id):
        self.pending.pop(after_id, None)
        self.cancelled.append(after_id)

    def delays(self) -> list[int]:
        return [ms for ms, _ in self.pending.values()]

    def fire(self) -> None:
        for after_id, (_, fn) in list(self.pending.items()):
            self.pending.pop(after_id, None)
            fn()


class RecordingNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    def notify(self, title, body, data=None):
        self.sent.append((title, body, data))


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

@pytest.fixture
def logger():
    return logging.getLogger("StatKeeperTest")


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def storage(data_dir, logger):
    return KeyValueStore(data_dir, logger)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def root():
    return FakeRoot()


@pytest.fixture
def notifier():
    return RecordingNotifier()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def store(storage, logger, clock):
    """A loaded CharacterStore seeded with the default sheet."""
    s = CharacterStore(storage, logger, clock=clock)
    s.load()
    return s


@pytest.fixture
def scheduler(store, storage, logger, notifier, clock):
    """A loaded DecayScheduler observing ``store``."""
    d = DecayScheduler(store, storage, logger, notifier=notifier, clock=clock)
    d.load()
    return d


@pytest.fixture
def value_of(store):
    """Return a lookup for the current value of one attribute."""
    def _value_of(category_id: str, stat_name: str) -> int:
        category = store.get_category(category_id)
        for stat in category["stats"]:
            if stat["name"] == stat_name:
                return stat["value"]
        raise KeyError(stat_name)

    return _value_of
