"""Create financial_cache table.

Lookups filter on a lower-cased name substring or an exact domain, newest
rows first, so both columns and created_at are indexed.
"""

from __future__ import annotations

import logging

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "4b9e2f7c1a3d"
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger(__name__)


def upgrade() -> None:
    op.create_table(
        "financial_cache",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("financial_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("source", sa.String(length=128), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("timezone('utc', now())"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("timezone('utc', now())"),
            server_onupdate=sa.text("timezone('utc', now())"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_financial_cache"),
        sa.UniqueConstraint("company_name", "domain", name="uq_financial_cache_company_domain"),
    )
    op.create_index("ix_financial_cache_domain", "financial_cache", ["domain"], unique=False)
    op.create_index(
        "ix_financial_cache_created_at", "financial_cache", ["created_at"], unique=False
    )
    op.execute(
        sa.text(
            "CREATE INDEX ix_financial_cache_company_name_lower "
            "ON financial_cache (lower(company_name))"
        )
    )
    logger.info("cache.migration.applied", extra={"revision": revision})


def downgrade() -> None:
    op.execute(sa.text("DROP INDEX IF EXISTS ix_financial_cache_company_name_lower"))
    op.drop_index("ix_financial_cache_created_at", table_name="financial_cache")
    op.drop_index("ix_financial_cache_domain", table_name="financial_cache")
    op.drop_table("financial_cache")
