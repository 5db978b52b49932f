"""
PostgresStorage adapter for the Studio kernel assembly layer.

Implements the PageStorage protocol using Postgres as the backend.
Schema lives in alembic/versions.
"""

from __future__ import annotations

import asyncpg

from studio.kernel.assembly import PageStorage


class PostgresStorage(PageStorage):
    """
    Postgres-based storage for page documents.

    Uses two tables:
    - page_documents: serialized working documents, one row per page
    - published_pages: published bundles keyed by public slug
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get(self, page_id: str) -> str | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT document FROM page_documents WHERE page_id = $1",
                page_id,
            )
            return row["document"] if row else None

    async def put(self, page_id: str, text: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO page_documents (page_id, document, updated_at)
                VALUES ($1, $2, now())
                ON CONFLICT (page_id)
                DO UPDATE SET document = EXCLUDED.document, updated_at = now()
                """,
                page_id,
                text,
            )

    async def put_published(self, slug: str, text: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO published_pages (slug, bundle, published_at)
                VALUES ($1, $2, now())
                ON CONFLICT (slug)
                DO UPDATE SET bundle = EXCLUDED.bundle, published_at = now()
                """,
                slug,
                text,
            )

    async def get_published(self, slug: str) -> str | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT bundle FROM published_pages WHERE slug = $1",
                slug,
            )
            return row["bundle"] if row else None

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()
