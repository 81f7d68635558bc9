"""Initial schema

Revision ID: 001
Revises: 
Create Date: 2025-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _invite_columns() -> list:
    return [
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), nullable=False),
        sa.Column('code', sa.String(20), nullable=False),
        sa.Column('created_by', sa.String(36), nullable=False),
        sa.Column('is_used', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_by_user_id', sa.String(36)),
        sa.Column('used_at', sa.DateTime(timezone=True)),
    ]


def upgrade() -> None:
    # Accounts 表（身份账户）
    op.create_table(
        'accounts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(200), nullable=False),
        sa.Column('hashed_password', sa.String(200), nullable=False),
        sa.Column('display_name', sa.String(200), nullable=False, server_default=''),
        *_timestamps(),
    )
    op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)

    # Profiles 表
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(200), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('tenant_id', sa.String(36)),
        sa.Column('building_id', sa.String(200)),
        sa.Column('apartment_number', sa.String(50)),
        sa.Column('phone', sa.String(50)),
        sa.Column('company_name', sa.String(200)),
        sa.Column('photo_url', sa.String(500)),
        *_timestamps(),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])
    op.create_index('ix_profiles_role', 'profiles', ['role'])
    op.create_index('ix_profiles_tenant_id', 'profiles', ['tenant_id'])

    # Tenants 表
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('address', sa.String(300), nullable=False),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('postal_code', sa.String(20), nullable=False),
        sa.Column('created_by_admin_id', sa.String(36), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('is_registered', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('invite_code', sa.String(20)),
        sa.Column('invite_code_expires_at', sa.DateTime(timezone=True)),
        sa.Column('user_id', sa.String(36)),
        sa.Column('email', sa.String(200)),
        sa.Column('contact_person', sa.String(200)),
        sa.Column('phone', sa.String(50)),
        *_timestamps(),
    )
    op.create_index('ix_tenants_created_by_admin_id', 'tenants', ['created_by_admin_id'])
    op.create_index('ix_tenants_invite_code', 'tenants', ['invite_code'])

    # 邀请码表
    op.create_table(
        'resident_invites',
        *_invite_columns(),
        sa.Column('building_id', sa.String(200), nullable=False),
        sa.Column('apartment_number', sa.String(50), nullable=False),
        *_timestamps(),
    )
    op.create_table('management_invites', *_invite_columns(), *_timestamps())
    op.create_table('service_company_invites', *_invite_columns(), *_timestamps())
    for table in ('resident_invites', 'management_invites', 'service_company_invites'):
        op.create_index(f'ix_{table}_tenant_id', table, ['tenant_id'])
        op.create_index(f'ix_{table}_code', table, ['code'])

    # Fault reports 表
    op.create_table(
        'fault_reports',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), nullable=False),
        sa.Column('building_id', sa.String(200)),
        sa.Column('apartment_number', sa.String(50)),
        sa.Column('created_by', sa.String(36), nullable=False),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('location', sa.String(300), nullable=False, server_default=''),
        sa.Column('urgency', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(30), nullable=False, server_default='open'),
        sa.Column('images', postgresql.JSONB, nullable=False, server_default='[]'),
        sa.Column('comment', sa.Text),
        sa.Column('updated_by', sa.String(36)),
        sa.Column('resolved_by', sa.String(36)),
        sa.Column('resolved_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index('ix_fault_reports_tenant_id', 'fault_reports', ['tenant_id'])
    op.create_index('ix_fault_reports_building_id', 'fault_reports', ['building_id'])
    op.create_index('ix_fault_reports_created_by', 'fault_reports', ['created_by'])
    op.create_index('ix_fault_reports_status', 'fault_reports', ['status'])

    # Announcements 表
    op.create_table(
        'announcements',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), nullable=False),
        sa.Column('author_id', sa.String(36), nullable=False),
        sa.Column('author_name', sa.String(200), nullable=False, server_default=''),
        sa.Column('type', sa.String(30), nullable=False, server_default='general'),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('start_date', sa.String(10)),
        sa.Column('start_time', sa.String(5)),
        sa.Column('end_date', sa.String(10)),
        sa.Column('end_time', sa.String(5)),
        sa.Column('is_pinned', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('attachments', postgresql.JSONB, nullable=False, server_default='[]'),
        *_timestamps(),
    )
    op.create_index('ix_announcements_tenant_id', 'announcements', ['tenant_id'])

    # Audit logs 表
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('actor', sa.String(100), nullable=False),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('target_type', sa.String(50), nullable=False),
        sa.Column('target_id', sa.String(36)),
        sa.Column('payload', postgresql.JSONB, nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_actor', 'audit_logs', ['actor'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_target_id', 'audit_logs', ['target_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('announcements')
    op.drop_table('fault_reports')
    op.drop_table('service_company_invites')
    op.drop_table('management_invites')
    op.drop_table('resident_invites')
    op.drop_table('tenants')
    op.drop_table('profiles')
    op.drop_table('accounts')
