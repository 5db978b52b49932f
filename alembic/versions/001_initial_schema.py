"""Page documents and published pages.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Working documents: deterministic JSON text, one row per page
    op.execute("""
        CREATE TABLE page_documents (
            page_id TEXT PRIMARY KEY,
            document TEXT NOT NULL,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    # Published bundles: rendered breakpoints + stylesheet + document
    op.execute("""
        CREATE TABLE published_pages (
            slug TEXT PRIMARY KEY,
            bundle TEXT NOT NULL,
            published_at TIMESTAMPTZ DEFAULT now()
        );
    """)


def downgrade():
    op.execute("DROP TABLE IF EXISTS published_pages;")
    op.execute("DROP TABLE IF EXISTS page_documents;")
