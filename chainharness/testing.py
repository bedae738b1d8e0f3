"""
Helpers for test suites that run against a chain session.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from .session import ChainSession


@asynccontextmanager
async def chain_session(system_setup: bool = False, **kwargs: Any) -> AsyncIterator[ChainSession]:
    """
    Set up a chain session and always tear it down afterwards.

    Usage:
        @pytest.fixture
        async def chain():
            async with chain_session(system_setup=True) as session:
                yield session
    """
    session = await ChainSession.setup(system_setup, **kwargs)
    try:
        yield session
    finally:
        await session.teardown()
