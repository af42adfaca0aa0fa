from datetime import datetime

import pytest

from app import create_app


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    # A Wednesday; the week runs Sun 2024-06-09 through Sat 2024-06-15.
    return FixedClock(datetime(2024, 6, 12, 10, 0))


@pytest.fixture
def database(tmp_path):
    return str(tmp_path / "timelogger.db")


@pytest.fixture
def app(database, clock):
    application = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test",
            "DATABASE": database,
            "CLOCK": clock,
            "REPORT_RECIPIENT": "supervisor@example.org",
        }
    )
    yield application


@pytest.fixture
def client(app):
    return app.test_client()
