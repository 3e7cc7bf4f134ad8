import asyncio
import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="fieldroute-tests-")

# Must be set before fieldroute.config is imported anywhere.
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'fieldroute_test.db')}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""
os.environ["TWILIO_PHONE_NUMBER"] = ""
os.environ["MAPBOX_TOKEN"] = ""
os.environ["OFFLINE_STORE_PATH"] = os.path.join(_TEST_DIR, "offline.json")

import pytest  # noqa: E402

from fieldroute.database import Base, _init_schema, engine  # noqa: E402


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(_init_schema)


@pytest.fixture(autouse=True)
def fresh_schema():
    # Own loop so the reset works for both async tests and TestClient tests.
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(_reset_schema())
    finally:
        loop.close()
    yield


@pytest.fixture
def offline_path(tmp_path):
    return tmp_path / "offline.json"
