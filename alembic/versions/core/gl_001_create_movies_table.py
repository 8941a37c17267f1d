"""create movies table with title full-text and genres indexes

Revision ID: gl_001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "gl_001"
down_revision = None
branch_labels = ("core",)
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS movies (
            id BIGSERIAL PRIMARY KEY,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            title TEXT NOT NULL,
            year INTEGER NOT NULL,
            runtime INTEGER NOT NULL,
            genres TEXT[] NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            CONSTRAINT movies_runtime_check CHECK (runtime >= 0),
            CONSTRAINT movies_year_check CHECK (year >= 1888),
            CONSTRAINT genres_length_check CHECK (array_length(genres, 1) BETWEEN 1 AND 5)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS movies_title_idx
        ON movies USING GIN (to_tsvector('simple', title))
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS movies_genres_idx
        ON movies USING GIN (genres)
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS movies_genres_idx")
    op.execute("DROP INDEX IF EXISTS movies_title_idx")
    op.execute("DROP TABLE IF EXISTS movies")
