"""Baseline migration - organizations, users, posts, meetings, messaging and jobs

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates every table of the marketplace schema.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False))
    return columns


def _id() -> sa.Column:
    return sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True)


def _fk(name: str, target: str, nullable: bool = False, ondelete: str | None = 'CASCADE') -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Files and locations
    # ==========================================================================
    op.create_table(
        'files',
        _id(),
        sa.Column('uuid', sa.Uuid(), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('content_type', sa.String(100), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('url_expiration', sa.DateTime(timezone=True), nullable=False),
        sa.Column('linked', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('idx_files_linked_updated', 'files', ['linked', 'updated_at'])

    op.create_table(
        'locations',
        _id(),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('country', sa.String(2), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
    )

    # ==========================================================================
    # Organizations
    # ==========================================================================
    op.create_table(
        'organizations',
        _id(),
        sa.Column('uuid', sa.Uuid(), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('url', sa.String(255), nullable=True),
        sa.Column('auth_type', sa.String(50), nullable=False),
        sa.Column('auth_config', sa.JSON(), nullable=False),
        _fk('logo_file_id', 'files.id', nullable=True, ondelete='SET NULL'),
        *_timestamps(),
    )

    op.create_table(
        'organization_domains',
        _id(),
        _fk('organization_id', 'organizations.id'),
        sa.Column('domain', sa.String(255), nullable=False, unique=True),
        sa.Column('auth_type', sa.String(50), nullable=True),
        sa.Column('auth_config', sa.JSON(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'organization_trusts',
        _id(),
        _fk('primary_id', 'organizations.id'),
        _fk('secondary_id', 'organizations.id'),
        *_timestamps(),
        sa.UniqueConstraint('primary_id', 'secondary_id', name='uq_trust_pair'),
        sa.CheckConstraint('primary_id <> secondary_id', name='ck_trust_distinct'),
    )
    op.create_index('idx_trust_secondary', 'organization_trusts', ['secondary_id'])

    # ==========================================================================
    # Users, memberships and access tokens
    # ==========================================================================
    op.create_table(
        'users',
        _id(),
        sa.Column('uuid', sa.Uuid(), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('first_name', sa.String(255), nullable=False),
        sa.Column('last_name', sa.String(255), nullable=False),
        sa.Column('nickname', sa.String(255), nullable=False, unique=True),
        sa.Column('admin_role', sa.String(20), nullable=False),
        _fk('photo_file_id', 'files.id', nullable=True, ondelete='SET NULL'),
        sa.Column('auth_photo_url', sa.String(1024), nullable=True),
        _fk('location_id', 'locations.id', nullable=True, ondelete='SET NULL'),
        sa.Column('preferences', sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'user_organizations',
        _id(),
        _fk('organization_id', 'organizations.id'),
        _fk('user_id', 'users.id'),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('auth_id', sa.String(255), nullable=False),
        sa.Column('auth_email', sa.String(255), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'organization_id', name='uq_user_org'),
    )
    op.create_index('idx_user_org_auth_email', 'user_organizations', ['auth_email'])

    op.create_table(
        'user_access_tokens',
        _id(),
        _fk('user_id', 'users.id'),
        _fk('user_organization_id', 'user_organizations.id'),
        sa.Column('access_token', sa.String(64), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index('idx_uat_expires', 'user_access_tokens', ['expires_at'])

    # ==========================================================================
    # Meetings
    # ==========================================================================
    op.create_table(
        'meetings',
        _id(),
        sa.Column('uuid', sa.Uuid(), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('more_info_url', sa.String(1024), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('invite_code', sa.Uuid(), nullable=True, unique=True),
        _fk('created_by_id', 'users.id'),
        _fk('location_id', 'locations.id', ondelete=None),
        _fk('image_file_id', 'files.id', nullable=True, ondelete='SET NULL'),
        *_timestamps(),
    )

    op.create_table(
        'meeting_invites',
        _id(),
        _fk('meeting_id', 'meetings.id'),
        _fk('inviter_id', 'users.id'),
        sa.Column('secret', sa.Uuid(), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint('meeting_id', 'email', name='uq_meeting_invite_email'),
    )

    op.create_table(
        'meeting_participants',
        _id(),
        _fk('meeting_id', 'meetings.id'),
        _fk('user_id', 'users.id'),
        _fk('invite_id', 'meeting_invites.id', nullable=True, ondelete='SET NULL'),
        sa.Column('is_organizer', sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint('meeting_id', 'user_id', name='uq_meeting_participant'),
    )

    # ==========================================================================
    # Posts
    # ==========================================================================
    op.create_table(
        'posts',
        _id(),
        sa.Column('uuid', sa.Uuid(), nullable=False, unique=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('size', sa.String(20), nullable=False),
        sa.Column('url', sa.String(1024), nullable=True),
        sa.Column('kilograms', sa.Float(), nullable=True),
        sa.Column('needed_before', sa.Date(), nullable=True),
        sa.Column('needed_after', sa.Date(), nullable=True),
        sa.Column('visibility', sa.String(20), nullable=False),
        _fk('created_by_id', 'users.id'),
        _fk('organization_id', 'organizations.id'),
        _fk('provider_id', 'users.id', nullable=True, ondelete='SET NULL'),
        _fk('receiver_id', 'users.id', nullable=True, ondelete='SET NULL'),
        _fk('destination_id', 'locations.id', ondelete=None),
        _fk('origin_id', 'locations.id', nullable=True, ondelete='SET NULL'),
        _fk('meeting_id', 'meetings.id', nullable=True, ondelete='SET NULL'),
        _fk('photo_file_id', 'files.id', nullable=True, ondelete='SET NULL'),
        *_timestamps(),
    )
    op.create_index('idx_posts_org_status', 'posts', ['organization_id', 'status'])
    op.create_index('idx_posts_created_by', 'posts', ['created_by_id'])

    op.create_table(
        'post_histories',
        _id(),
        _fk('post_id', 'posts.id'),
        sa.Column('from_status', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        _fk('changed_by_id', 'users.id', nullable=True, ondelete='SET NULL'),
        _fk('provider_id', 'users.id', nullable=True, ondelete='SET NULL'),
        _fk('receiver_id', 'users.id', nullable=True, ondelete='SET NULL'),
        *_timestamps(updated=False),
    )
    op.create_index('idx_post_histories_post', 'post_histories', ['post_id', 'created_at'])

    op.create_table(
        'post_files',
        _id(),
        _fk('post_id', 'posts.id'),
        _fk('file_id', 'files.id'),
        *_timestamps(updated=False),
        sa.UniqueConstraint('post_id', 'file_id', name='uq_post_file'),
    )

    op.create_table(
        'potential_providers',
        _id(),
        _fk('post_id', 'posts.id'),
        _fk('user_id', 'users.id'),
        *_timestamps(updated=False),
        sa.UniqueConstraint('post_id', 'user_id', name='uq_potential_provider'),
    )

    op.create_table(
        'watches',
        _id(),
        sa.Column('uuid', sa.Uuid(), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        _fk('owner_id', 'users.id'),
        _fk('destination_id', 'locations.id', nullable=True, ondelete='SET NULL'),
        _fk('meeting_id', 'meetings.id', nullable=True),
        sa.Column('search_text', sa.String(255), nullable=True),
        sa.Column('size', sa.String(20), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_watches_owner', 'watches', ['owner_id'])

    # ==========================================================================
    # Messaging
    # ==========================================================================
    op.create_table(
        'threads',
        _id(),
        sa.Column('uuid', sa.Uuid(), nullable=False, unique=True),
        _fk('post_id', 'posts.id'),
        *_timestamps(),
    )
    op.create_index('idx_threads_post', 'threads', ['post_id'])

    op.create_table(
        'thread_participants',
        _id(),
        _fk('thread_id', 'threads.id'),
        _fk('user_id', 'users.id'),
        sa.Column('last_viewed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_notified_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('thread_id', 'user_id', name='uq_thread_participant'),
    )

    op.create_table(
        'messages',
        _id(),
        sa.Column('uuid', sa.Uuid(), nullable=False, unique=True),
        _fk('thread_id', 'threads.id'),
        _fk('sent_by_id', 'users.id'),
        sa.Column('content', sa.Text(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('idx_messages_thread_created', 'messages', ['thread_id', 'created_at'])

    # ==========================================================================
    # Background jobs
    # ==========================================================================
    op.create_table(
        'jobs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('job_type', sa.String(50), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('run_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('idempotency_key', sa.String(255), nullable=True),
    )
    op.create_index('idx_jobs_pending', 'jobs', ['status', 'run_at'])
    op.create_index('uq_job_idempotency', 'jobs', ['idempotency_key'], unique=True)


def downgrade() -> None:
    """Drop all tables."""
    for table in (
        'jobs',
        'messages',
        'thread_participants',
        'threads',
        'watches',
        'potential_providers',
        'post_files',
        'post_histories',
        'posts',
        'meeting_participants',
        'meeting_invites',
        'meetings',
        'user_access_tokens',
        'user_organizations',
        'users',
        'organization_trusts',
        'organization_domains',
        'organizations',
        'locations',
        'files',
    ):
        op.drop_table(table)
