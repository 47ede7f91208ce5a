"""Initial schema: users, shared_files, activities

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


user_role = sa.Enum('user', 'admin', name='userrole')
share_status = sa.Enum('active', 'revoked', name='sharestatus')
share_visibility = sa.Enum('public', 'private', name='sharevisibility')
activity_event_type = sa.Enum(
    'download_success', 'download_blocked', 'link_regenerated', 'link_revoked', 'access_attempt',
    name='activityeventtype',
)
activity_status = sa.Enum('success', 'blocked', 'info', name='activitystatus')


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('created_at_utc', sa.DateTime(timezone=True), nullable=False),
        sa.Column('failed_login_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lock_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reset_password_token', sa.String(length=64), nullable=True),
        sa.Column('reset_password_expiry', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_reset_password_token', 'users', ['reset_password_token'])

    op.create_table(
        'shared_files',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('owner_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('original_name', sa.String(length=255), nullable=False),
        sa.Column('stored_name', sa.String(length=255), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=False),
        sa.Column('content_type', sa.String(length=255), nullable=False),
        sa.Column('storage_path', sa.String(length=512), nullable=False),
        sa.Column('uploaded_at_utc', sa.DateTime(timezone=True), nullable=False),
        sa.Column('access_token', sa.String(length=80), nullable=False),
        sa.Column('expiry_at_utc', sa.DateTime(timezone=True), nullable=False),
        sa.Column('max_downloads', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('used_downloads', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', share_status, nullable=False),
        sa.Column('visibility', share_visibility, nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shared_files_owner_id', 'shared_files', ['owner_id'])
    op.create_index('ix_shared_files_access_token', 'shared_files', ['access_token'], unique=True)

    op.create_table(
        'activities',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('file_id', sa.String(length=36), nullable=False),
        sa.Column('timestamp_utc', sa.DateTime(timezone=True), nullable=False),
        sa.Column('event_type', activity_event_type, nullable=False),
        sa.Column('status', activity_status, nullable=False),
        sa.Column('details', sa.Text(), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activities_file_id', 'activities', ['file_id'])
    op.create_index('ix_activities_timestamp_utc', 'activities', ['timestamp_utc'])


def downgrade():
    op.drop_index('ix_activities_timestamp_utc', 'activities')
    op.drop_index('ix_activities_file_id', 'activities')
    op.drop_table('activities')
    op.drop_index('ix_shared_files_access_token', 'shared_files')
    op.drop_index('ix_shared_files_owner_id', 'shared_files')
    op.drop_table('shared_files')
    op.drop_index('ix_users_reset_password_token', 'users')
    op.drop_index('ix_users_email', 'users')
    op.drop_table('users')
    for enum_type in (activity_status, activity_event_type, share_visibility, share_status, user_role):
        enum_type.drop(op.get_bind(), checkfirst=True)
