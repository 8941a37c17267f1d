"""create users, permissions and users_permissions tables

Revision ID: gl_002
Revises: gl_001
Create Date: 2026-10-19 00:00:01.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "gl_002"
down_revision = "gl_001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS citext")
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            name TEXT NOT NULL,
            email CITEXT UNIQUE NOT NULL,
            password_hash BYTEA NOT NULL,
            activated BOOLEAN NOT NULL DEFAULT false,
            version INTEGER NOT NULL DEFAULT 1
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS permissions (
            id BIGSERIAL PRIMARY KEY,
            code TEXT UNIQUE NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS users_permissions (
            user_id BIGINT NOT NULL REFERENCES users ON DELETE CASCADE,
            permission_id BIGINT NOT NULL REFERENCES permissions ON DELETE CASCADE,
            PRIMARY KEY (user_id, permission_id)
        )
    """)
    op.execute("""
        INSERT INTO permissions (code)
        VALUES ('movies:read'), ('movies:write')
        ON CONFLICT (code) DO NOTHING
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users_permissions")
    op.execute("DROP TABLE IF EXISTS permissions")
    op.execute("DROP TABLE IF EXISTS users")
    op.execute("DROP EXTENSION IF EXISTS citext")
