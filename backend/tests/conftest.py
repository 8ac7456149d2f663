import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.toolsuite import sql_storage, storage as storage_module  # noqa: E402
from backend.toolsuite.auth import PasswordHasher  # noqa: E402
from backend.toolsuite.sql_storage import SqlStorage  # noqa: E402
from backend.toolsuite.storage import MemoryStorage  # noqa: E402

# bcrypt's minimum work factor keeps the suite fast.
TEST_BCRYPT_ROUNDS = 4


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path, hasher):
    if request.param == "memory":
        return MemoryStorage(hasher)
    return SqlStorage.from_url(f"sqlite:///{tmp_path / 'toolsuite.db'}", hasher=hasher)


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock(datetime(2026, 10, 1, 12, 0, 0))
    monkeypatch.setattr(storage_module, "utcnow", fake)
    monkeypatch.setattr(sql_storage, "utcnow", fake)
    return fake
