from datetime import date

import httpx
import pytest
import pytest_asyncio

from config import Settings
from database import create_engine, init_db
from main import create_app
from policy import SlotPolicy
from remote import RemoteBookingStore
from store import LocalBookingStore, MemoryBookingStore, SqlBookingStore

# Monday of 2025-W10
MONDAY_W10 = date(2025, 3, 3)


def make_draft(title="Alex", day=MONDAY_W10, start_hour=8):
    return SlotPolicy().draft(title, day, start_hour)


def remote_store_for(app) -> RemoteBookingStore:
    return RemoteBookingStore("http://testserver", transport=httpx.ASGITransport(app=app))


@pytest.fixture
def memory_store():
    return MemoryBookingStore()


@pytest.fixture
def local_store(tmp_path):
    return LocalBookingStore(tmp_path)


@pytest_asyncio.fixture(params=["memory", "local", "sql", "remote"])
async def store(request, tmp_path):
    """Each test using this runs once per backend."""
    if request.param == "memory":
        backend = MemoryBookingStore()
    elif request.param == "local":
        backend = LocalBookingStore(tmp_path)
    elif request.param == "sql":
        backend = SqlBookingStore(create_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}"))
        await init_db(backend.engine)
    else:
        app = create_app(Settings(backend="memory"), store=MemoryBookingStore())
        backend = remote_store_for(app)
    yield backend
    await backend.close()
