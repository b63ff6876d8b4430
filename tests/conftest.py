# tests/conftest.py

import datetime

import pytest

from core.channel import InMemoryChannel
from core.record_store import InMemoryRecordStore
from core.session import DismissalSession
from core.settings import DismissalSettings
from models.aggregation_index import AggregationIndex
from models.classroom import Classroom
from models.family import Family
from models.snapshot import Snapshot
from models.status_record import DailyStatusRecord
from models.student import Student

TEST_DAY = "2025-09-02"
START_TIME = datetime.datetime(2025, 9, 2, 19, 0, tzinfo=datetime.timezone.utc)


class FixedClock:

    def __init__(self, now: datetime.datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float) -> datetime.datetime:
        self.now = self.now + datetime.timedelta(seconds=seconds)
        return self.now


class ManualTimer:

    def __init__(self, interval_seconds, on_tick):
        self.interval_seconds = interval_seconds
        self.on_tick = on_tick
        self.is_running = False

    def start(self):
        self.is_running = True

    def stop(self):
        self.is_running = False

    def tick(self):
        self.on_tick()


@pytest.fixture
def sample_classrooms():
    return [
        Classroom("cx", "Room X", 1),
        Classroom("cy", "Room Y", 2),
        Classroom("cz", "Room Z", 3),
    ]


@pytest.fixture
def sample_families():
    return [
        Family("f001", 101, "Dana & Sam Smith"),
        Family("f002", 102, "Chris Jones"),
        Family("f003", 103, "Pat Brown"),
        Family("f004", 104, "Lee Adams"),
        Family("f005", 105, "No Students"),
    ]


@pytest.fixture
def sample_students():
    # f001 spans two classrooms, f004 has two students in one classroom
    return [
        Student("s001", "Ava", "Smith", "cx", "f001"),
        Student("s002", "Liam", "Jones", "cx", "f002"),
        Student("s003", "Noah", "Brown", "cx", "f003"),
        Student("s004", "Ben", "Smith", "cy", "f001"),
        Student("s005", "Emma", "Adams", "cy", "f004"),
        Student("s006", "Olivia", "Adams", "cy", "f004"),
    ]


@pytest.fixture
def make_record():
    def _make_record(student_id, status, minutes=0, day=TEST_DAY, actor="spotter"):
        return DailyStatusRecord(
            student_id,
            day,
            status,
            START_TIME + datetime.timedelta(minutes=minutes),
            actor,
        )

    return _make_record


@pytest.fixture
def sample_index(sample_classrooms, sample_students):
    return AggregationIndex.build(sample_classrooms, sample_students, [])


@pytest.fixture
def sample_snapshot(sample_classrooms, sample_students, sample_families):
    return Snapshot(TEST_DAY, sample_classrooms, sample_students, sample_families, [])


@pytest.fixture
def sample_store(sample_classrooms, sample_students, sample_families):
    return InMemoryRecordStore(sample_classrooms, sample_students, sample_families)


@pytest.fixture
def sample_channel(sample_store):
    channel = InMemoryChannel()
    sample_store.attach_channel(channel)
    return channel


@pytest.fixture
def sample_settings():
    return DismissalSettings(
        _env_file=None,
        school_timezone="America/New_York",
        resync_interval_seconds=45,
        incremental_enabled=True,
        resync_on_visibility=True,
        background_reads=False,
        default_actor="spotter",
        log_level="WARNING",
    )


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def create_session(sample_store, sample_settings, clock):
    sessions = []

    def _create_session(channel=None, settings=None, store=None, **kwargs):
        store = store or sample_store
        if channel is None:
            channel = InMemoryChannel()
            store.attach_channel(channel)

        session = DismissalSession(
            store,
            channel,
            settings=settings or sample_settings,
            day=kwargs.pop("day", TEST_DAY),
            clock=kwargs.pop("clock", clock),
            timer_factory=kwargs.pop("timer_factory", ManualTimer),
            **kwargs,
        )
        sessions.append(session)
        return session

    yield _create_session

    for session in sessions:
        session.close()


@pytest.fixture
def started_session(create_session, sample_channel):
    session = create_session(channel=sample_channel)
    response = session.start()
    assert response.success
    return session
