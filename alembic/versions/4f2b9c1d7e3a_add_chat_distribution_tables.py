"""add chat distribution tables

Revision ID: 4f2b9c1d7e3a
Revises:
Create Date: 2026-10-19 09:12:41.204113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f2b9c1d7e3a'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('distribution_strategy', sa.String(), server_default='least_loaded', nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_companies_id'), 'companies', ['id'], unique=False)
    op.create_index(op.f('ix_companies_name'), 'companies', ['name'], unique=False)

    op.create_table(
        'attendant_statuses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('active_chats', sa.Integer(), server_default='0', nullable=False),
        sa.Column('max_chats', sa.Integer(), server_default='3', nullable=False),
        sa.Column('last_activity_at', sa.DateTime(), nullable=False),
        sa.Column('last_assigned_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'company_id', name='uq_attendant_status_user_company')
    )
    op.create_index(op.f('ix_attendant_statuses_id'), 'attendant_statuses', ['id'], unique=False)
    op.create_index(op.f('ix_attendant_statuses_user_id'), 'attendant_statuses', ['user_id'], unique=False)
    op.create_index(op.f('ix_attendant_statuses_company_id'), 'attendant_statuses', ['company_id'], unique=False)
    op.create_index('idx_attendant_status_company_status', 'attendant_statuses', ['company_id', 'status'], unique=False)

    op.create_table(
        'chat_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('chat_id', sa.String(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.Column('last_customer_message_at', sa.DateTime(), nullable=True),
        sa.Column('last_attendant_message_at', sa.DateTime(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(), nullable=False),
        sa.Column('window_expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_chat_assignments_id'), 'chat_assignments', ['id'], unique=False)
    op.create_index(op.f('ix_chat_assignments_chat_id'), 'chat_assignments', ['chat_id'], unique=True)
    op.create_index(op.f('ix_chat_assignments_company_id'), 'chat_assignments', ['company_id'], unique=False)
    op.create_index(op.f('ix_chat_assignments_assigned_to'), 'chat_assignments', ['assigned_to'], unique=False)
    op.create_index('idx_chat_assignment_company_status', 'chat_assignments', ['company_id', 'status'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_chat_assignment_company_status', table_name='chat_assignments')
    op.drop_index(op.f('ix_chat_assignments_assigned_to'), table_name='chat_assignments')
    op.drop_index(op.f('ix_chat_assignments_company_id'), table_name='chat_assignments')
    op.drop_index(op.f('ix_chat_assignments_chat_id'), table_name='chat_assignments')
    op.drop_index(op.f('ix_chat_assignments_id'), table_name='chat_assignments')
    op.drop_table('chat_assignments')

    op.drop_index('idx_attendant_status_company_status', table_name='attendant_statuses')
    op.drop_index(op.f('ix_attendant_statuses_company_id'), table_name='attendant_statuses')
    op.drop_index(op.f('ix_attendant_statuses_user_id'), table_name='attendant_statuses')
    op.drop_index(op.f('ix_attendant_statuses_id'), table_name='attendant_statuses')
    op.drop_table('attendant_statuses')

    op.drop_index(op.f('ix_companies_name'), table_name='companies')
    op.drop_index(op.f('ix_companies_id'), table_name='companies')
    op.drop_table('companies')
