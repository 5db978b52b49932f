"""
Pytest configuration and fixtures for the Studio service tests.

Routes run against an in-memory assembly. The ASGI transport does not run the
app lifespan, so the assembly dependency is overridden per test.
"""

from __future__ import annotations

import httpx
import pytest_asyncio

from backend.main import app, build_assembly
from backend.routes.pages import get_assembly
from studio.kernel.assembly import MemoryStorage


@pytest_asyncio.fixture
async def storage():
    return MemoryStorage()


@pytest_asyncio.fixture
async def assembly(storage):
    return build_assembly(storage)


@pytest_asyncio.fixture
async def async_client(assembly):
    """Async HTTP client against the ASGI app."""
    app.dependency_overrides[get_assembly] = lambda: assembly
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
