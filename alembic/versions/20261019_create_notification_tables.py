"""Create device_tokens, notification_preferences and in_app_notifications

Revision ID: 20261019_notification_tables
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_notification_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'device_tokens',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('platform', sa.Enum('ios', 'android', 'web', name='deviceplatform'), nullable=False),
        sa.Column('device_id', sa.String(), nullable=True),
        sa.Column('last_active', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_device_tokens_user_id', 'device_tokens', ['user_id'], unique=False)
    op.create_index('ix_device_tokens_token', 'device_tokens', ['token'], unique=True)
    op.create_index('ix_device_tokens_platform', 'device_tokens', ['platform'], unique=False)
    op.create_index('ix_device_tokens_device_id', 'device_tokens', ['device_id'], unique=False)
    op.create_index('ix_device_tokens_last_active', 'device_tokens', ['last_active'], unique=False)
    op.create_index('ix_device_tokens_user_platform', 'device_tokens', ['user_id', 'platform'], unique=False)
    op.create_index(
        'uq_device_tokens_user_device', 'device_tokens', ['user_id', 'device_id'], unique=True,
        postgresql_where=sa.text('device_id IS NOT NULL'),
        sqlite_where=sa.text('device_id IS NOT NULL'),
    )

    op.create_table(
        'notification_preferences',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('transactional', sa.JSON(), nullable=True),
        sa.Column('taskUpdates', sa.JSON(), nullable=True),
        sa.Column('taskReminders', sa.JSON(), nullable=True),
        sa.Column('keywordTaskAlerts', sa.JSON(), nullable=True),
        sa.Column('recommendedTaskAlerts', sa.JSON(), nullable=True),
        sa.Column('helpfulInformation', sa.JSON(), nullable=True),
        sa.Column('updatesNewsletters', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    # Unique but nullable: rows without a user id do not collide
    op.create_index('ix_notification_preferences_user_id', 'notification_preferences', ['user_id'], unique=True)

    op.create_table(
        'in_app_notifications',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum('info', 'warning', 'error', 'success', name='inappnotificationtype'), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_in_app_notifications_user_id', 'in_app_notifications', ['user_id'], unique=False)
    op.create_index('ix_in_app_notifications_type', 'in_app_notifications', ['type'], unique=False)
    op.create_index('ix_in_app_notifications_category', 'in_app_notifications', ['category'], unique=False)
    op.create_index('ix_in_app_notifications_read', 'in_app_notifications', ['read'], unique=False)
    op.create_index('ix_in_app_notifications_expires_at', 'in_app_notifications', ['expires_at'], unique=False)
    op.create_index('ix_in_app_notifications_user_read', 'in_app_notifications', ['user_id', 'read'], unique=False)
    op.create_index('ix_in_app_notifications_user_created', 'in_app_notifications', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('in_app_notifications')
    op.drop_table('notification_preferences')
    op.drop_table('device_tokens')
    # Drop the enum types (PostgreSQL specific)
    op.execute('DROP TYPE IF EXISTS inappnotificationtype')
    op.execute('DROP TYPE IF EXISTS deviceplatform')
