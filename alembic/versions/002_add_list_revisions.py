"""add list revisions

Revision ID: 002
Revises: 001
Create Date: 2025-03-20

新增列表写入版本号：
- announcements.attachments_revision
- fault_reports.images_revision
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        'announcements',
        sa.Column('attachments_revision', sa.Integer(), server_default='0', nullable=False),
    )
    op.add_column(
        'fault_reports',
        sa.Column('images_revision', sa.Integer(), server_default='0', nullable=False),
    )


def downgrade() -> None:
    op.drop_column('fault_reports', 'images_revision')
    op.drop_column('announcements', 'attachments_revision')
