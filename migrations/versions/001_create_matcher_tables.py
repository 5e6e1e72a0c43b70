"""Create matcher job and match result tables.

This migration adds:
- product_matcher_jobs: one row per bulk matching job with JSON progress
- product_match_results: one row per sheet row with ranked matches

Revision ID: 001_create_matcher_tables
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_create_matcher_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'product_matcher_jobs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('sheet_data', sa.JSON(), nullable=False),
        sa.Column('providers', sa.JSON(), nullable=False),
        sa.Column('criteria', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('progress', sa.JSON(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name='check_matcher_job_status'
        ),
    )
    op.create_index('ix_product_matcher_jobs_status', 'product_matcher_jobs', ['status'])

    op.create_table(
        'product_match_results',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('job_id', sa.Uuid(), nullable=False),
        sa.Column('row_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('original_product', sa.JSON(), nullable=False),
        sa.Column('matches', sa.JSON(), nullable=False),
        sa.Column('best_match_id', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('sku', sa.String(length=255), nullable=True),
        sa.Column('landed_cost_value', sa.Float(), nullable=True),
        sa.Column('landed_cost_currency', sa.String(length=3), nullable=True),
        sa.Column('eta_days', sa.Integer(), nullable=True),
        sa.Column('reliability_score', sa.Integer(), nullable=True),
        sa.Column('ranking_score', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['job_id'], ['product_matcher_jobs.id'],
            ondelete='CASCADE'
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'searching', 'found', 'not_found', 'error')",
            name='check_match_result_status'
        ),
    )
    op.create_index('ix_product_match_results_job_id', 'product_match_results', ['job_id'])


def downgrade() -> None:
    op.drop_index('ix_product_match_results_job_id', table_name='product_match_results')
    op.drop_table('product_match_results')
    op.drop_index('ix_product_matcher_jobs_status', table_name='product_matcher_jobs')
    op.drop_table('product_matcher_jobs')
