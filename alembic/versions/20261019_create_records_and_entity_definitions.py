"""create_records_and_entity_definitions

Revision ID: 3f1c2a9e7b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration creates the canonical store tables:
1. Creates Records table (document bodies plus promoted tenancy columns)
2. Creates EntityDefinitions table (per-entity search metadata)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c2a9e7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    # ==========================================================================
    # 1. Create Records table
    # ==========================================================================
    op.create_table('Records',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('entity_name', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=True),
        sa.Column('solution_id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=36), nullable=True),
        sa.Column('owned_by', sa.String(length=36), nullable=True),
        sa.Column('data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('search_reindexed_on', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_Records_entity_name'), 'Records', ['entity_name'], unique=False)
    op.create_index(op.f('ix_Records_solution_id'), 'Records', ['solution_id'], unique=False)
    op.create_index(op.f('ix_Records_organization_id'), 'Records', ['organization_id'], unique=False)
    # Stale-record scan: records of a solution by last reindex time
    op.create_index(
        'ix_records_solution_reindexed',
        'Records',
        ['solution_id', 'search_reindexed_on'],
    )

    # ==========================================================================
    # 2. Create EntityDefinitions table
    # ==========================================================================
    op.create_table('EntityDefinitions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('solution_id', sa.String(length=36), nullable=False),
        sa.Column('entity_name', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=True),
        sa.Column('index_fields', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('display_fields', sa.JSON(), nullable=True),
        sa.Column('content_fields', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'solution_id', 'entity_name', 'entity_type',
            name='uq_entity_definitions_solution_entity_type',
        )
    )
    op.create_index(
        op.f('ix_EntityDefinitions_solution_id'), 'EntityDefinitions', ['solution_id'], unique=False
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index(op.f('ix_EntityDefinitions_solution_id'), table_name='EntityDefinitions')
    op.drop_table('EntityDefinitions')

    op.drop_index('ix_records_solution_reindexed', table_name='Records')
    op.drop_index(op.f('ix_Records_organization_id'), table_name='Records')
    op.drop_index(op.f('ix_Records_solution_id'), table_name='Records')
    op.drop_index(op.f('ix_Records_entity_name'), table_name='Records')
    op.drop_table('Records')
