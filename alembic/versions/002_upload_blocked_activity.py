"""Log rejected uploads: upload_blocked event type, activities.file_id nullable

Revision ID: 002_upload_blocked_activity
Revises: 001_initial_schema
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002_upload_blocked_activity'
down_revision = '001_initial_schema'
branch_labels = None
depends_on = None


old_event_type = sa.Enum(
    'download_success', 'download_blocked', 'link_regenerated', 'link_revoked', 'access_attempt',
    name='activityeventtype',
)
new_event_type = sa.Enum(
    'download_success', 'download_blocked', 'link_regenerated', 'link_revoked', 'access_attempt',
    'upload_blocked',
    name='activityeventtype',
)


def upgrade():
    if op.get_bind().dialect.name == 'postgresql':
        op.execute("ALTER TYPE activityeventtype ADD VALUE IF NOT EXISTS 'upload_blocked'")
        op.alter_column('activities', 'file_id', existing_type=sa.String(length=36), nullable=True)
        return

    with op.batch_alter_table('activities') as batch_op:
        batch_op.alter_column('file_id', existing_type=sa.String(length=36), nullable=True)
        batch_op.alter_column('event_type', existing_type=old_event_type, type_=new_event_type, existing_nullable=False)


def downgrade():
    op.execute("DELETE FROM activities WHERE event_type = 'upload_blocked' OR file_id IS NULL")

    if op.get_bind().dialect.name == 'postgresql':
        # enum values cannot be dropped in place
        op.alter_column('activities', 'file_id', existing_type=sa.String(length=36), nullable=False)
        return

    with op.batch_alter_table('activities') as batch_op:
        batch_op.alter_column('event_type', existing_type=new_event_type, type_=old_event_type, existing_nullable=False)
        batch_op.alter_column('file_id', existing_type=sa.String(length=36), nullable=False)
