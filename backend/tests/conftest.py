import pytest_asyncio

from zerpha.models import Workspace
from zerpha.models.base import build_engine, build_session_factory, init_db


@pytest_asyncio.fixture
async def session_factory():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def workspace_id(session_factory):
    async with session_factory() as session:
        workspace = Workspace(name="Test workspace")
        session.add(workspace)
        await session.commit()
        await session.refresh(workspace)
        return workspace.id
