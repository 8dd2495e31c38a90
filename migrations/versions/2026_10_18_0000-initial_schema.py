"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - short_urls table: short code mappings and their access constraints
    - click_events table: one enriched row per tracked redirect
    """
    op.create_table(
        'short_urls',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('short_code', sa.String(length=50), nullable=True),
        sa.Column('original_url', sa.Text(), nullable=False),
        sa.Column('owner_id', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('click_limit', sa.Integer(), nullable=True),
        sa.Column('click_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('password_hash', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_short_urls_short_code', 'short_urls', ['short_code'], unique=True)
    op.create_index('ix_short_urls_owner_id', 'short_urls', ['owner_id'])
    op.create_index('ix_short_urls_created_at', 'short_urls', ['created_at'])

    op.create_table(
        'click_events',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('short_url_id', sa.Integer(), nullable=False),
        sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('session_id', sa.String(length=100), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('browser', sa.String(length=100), nullable=True),
        sa.Column('browser_version', sa.String(length=50), nullable=True),
        sa.Column('os', sa.String(length=100), nullable=True),
        sa.Column('os_version', sa.String(length=50), nullable=True),
        sa.Column('device', sa.String(length=100), nullable=True),
        sa.Column('device_type', sa.String(length=20), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.Column('referrer_domain', sa.String(length=255), nullable=True),
        sa.Column('traffic_source', sa.String(length=30), nullable=True),
        sa.Column('utm_source', sa.String(length=255), nullable=True),
        sa.Column('utm_medium', sa.String(length=255), nullable=True),
        sa.Column('utm_campaign', sa.String(length=255), nullable=True),
        sa.Column('utm_term', sa.String(length=255), nullable=True),
        sa.Column('utm_content', sa.String(length=255), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('country_code', sa.String(length=10), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_click_events_short_url_id', 'click_events', ['short_url_id'])
    op.create_index('ix_click_events_clicked_at', 'click_events', ['clicked_at'])
    op.create_index('ix_click_events_device_type', 'click_events', ['device_type'])
    op.create_index('ix_click_events_traffic_source', 'click_events', ['traffic_source'])
    op.create_index('ix_click_events_country', 'click_events', ['country'])


def downgrade() -> None:
    """Drop all tables and indexes."""
    op.drop_index('ix_click_events_country', table_name='click_events')
    op.drop_index('ix_click_events_traffic_source', table_name='click_events')
    op.drop_index('ix_click_events_device_type', table_name='click_events')
    op.drop_index('ix_click_events_clicked_at', table_name='click_events')
    op.drop_index('ix_click_events_short_url_id', table_name='click_events')
    op.drop_table('click_events')

    op.drop_index('ix_short_urls_created_at', table_name='short_urls')
    op.drop_index('ix_short_urls_owner_id', table_name='short_urls')
    op.drop_index('ix_short_urls_short_code', table_name='short_urls')
    op.drop_table('short_urls')
