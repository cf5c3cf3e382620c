"""Leave engine schema: org, leave types, requests, approval levels, ledger, documents

Revision ID: 001_leave_engine
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_leave_engine'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEAVE_STATUS = ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')
APPROVAL_STATUS = ('PENDING', 'APPROVED', 'REJECTED')


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_departments_id'), 'departments', ['id'], unique=False)
    op.create_index(op.f('ix_departments_name'), 'departments', ['name'], unique=True)

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emp_code', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column(
            'role',
            sa.Enum('EMPLOYEE', 'MANAGER', 'DEPARTMENT_DIRECTOR', 'EXECUTIVE', 'HR', 'ADMIN', name='orgrole'),
            nullable=False,
        ),
        sa.Column('department_id', sa.Integer(), nullable=True),
        sa.Column('reporting_manager_id', sa.Integer(), nullable=True),
        sa.Column('department_director_id', sa.Integer(), nullable=True),
        sa.Column('join_date', sa.Date(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps('created_at', 'updated_at'),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id'], ),
        sa.ForeignKeyConstraint(['reporting_manager_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['department_director_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_employees_id'), 'employees', ['id'], unique=False)
    op.create_index(op.f('ix_employees_emp_code'), 'employees', ['emp_code'], unique=True)
    op.create_index(op.f('ix_employees_reporting_manager_id'), 'employees', ['reporting_manager_id'], unique=False)
    op.create_index(op.f('ix_employees_department_director_id'), 'employees', ['department_director_id'], unique=False)

    op.create_table(
        'holidays',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', 'date', name='uq_holiday_year_date'),
    )
    op.create_index(op.f('ix_holidays_id'), 'holidays', ['id'], unique=False)
    op.create_index(op.f('ix_holidays_year'), 'holidays', ['year'], unique=False)
    op.create_index(op.f('ix_holidays_date'), 'holidays', ['date'], unique=False)

    op.create_table(
        'leave_types',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('annual_entitlement', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('tracks_balance', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('allow_carry_forward', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('requires_hr_verification', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_leave_types_id'), 'leave_types', ['id'], unique=False)
    op.create_index(op.f('ix_leave_types_code'), 'leave_types', ['code'], unique=True)

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_number', sa.String(length=20), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), nullable=False),
        sa.Column('from_date', sa.Date(), nullable=False),
        sa.Column('to_date', sa.Date(), nullable=False),
        sa.Column('selected_dates', sa.JSON(), nullable=True),
        sa.Column('total_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum(*LEAVE_STATUS, name='leavestatus'), nullable=False, server_default='PENDING'),
        sa.Column('approval_chain_json', sa.JSON(), nullable=True),
        sa.Column(
            'hr_verification_status',
            sa.Enum('NOT_REQUIRED', 'PENDING', 'VERIFIED', 'FAILED', name='hrverificationstatus'),
            nullable=False,
            server_default='NOT_REQUIRED',
        ),
        sa.Column('hr_verified_by_id', sa.Integer(), nullable=True),
        sa.Column('hr_verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hr_verification_notes', sa.Text(), nullable=True),
        sa.Column('cancelled_by_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps('created_at', 'updated_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['leave_type_id'], ['leave_types.id'], ),
        sa.ForeignKeyConstraint(['hr_verified_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['cancelled_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('from_date <= to_date', name='check_from_date_le_to_date'),
    )
    op.create_index(op.f('ix_leave_requests_id'), 'leave_requests', ['id'], unique=False)
    op.create_index(op.f('ix_leave_requests_request_number'), 'leave_requests', ['request_number'], unique=True)
    op.create_index(op.f('ix_leave_requests_employee_id'), 'leave_requests', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_requests_leave_type_id'), 'leave_requests', ['leave_type_id'], unique=False)
    op.create_index(op.f('ix_leave_requests_cancelled_by_id'), 'leave_requests', ['cancelled_by_id'], unique=False)
    op.create_index('ix_leave_requests_employee_dates', 'leave_requests', ['employee_id', 'from_date', 'to_date'], unique=False)

    op.create_table(
        'approval_levels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column(
            'role',
            sa.Enum(
                'DIRECT_MANAGER', 'DEPARTMENT_DIRECTOR', 'EXECUTIVE', 'PEER_EXECUTIVE', 'HR', 'ESCALATION',
                name='approvalrole',
            ),
            nullable=False,
        ),
        sa.Column('approver_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum(*APPROVAL_STATUS, name='approvalstatus'), nullable=False, server_default='PENDING'),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decided_by_id', sa.Integer(), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('signature_data', sa.Text(), nullable=True),
        sa.Column('escalated_to_id', sa.Integer(), nullable=True),
        sa.Column('escalated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('escalation_reason', sa.Text(), nullable=True),
        sa.Column('escalated_from_id', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.ForeignKeyConstraint(['approver_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['decided_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['escalated_to_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['escalated_from_id'], ['approval_levels.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('level >= 1', name='check_approval_level_positive'),
    )
    op.create_index(op.f('ix_approval_levels_id'), 'approval_levels', ['id'], unique=False)
    op.create_index(op.f('ix_approval_levels_leave_request_id'), 'approval_levels', ['leave_request_id'], unique=False)
    op.create_index(op.f('ix_approval_levels_approver_id'), 'approval_levels', ['approver_id'], unique=False)
    op.create_index('ix_approval_levels_status_approver', 'approval_levels', ['status', 'approver_id'], unique=False)

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('entitled', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('used', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('pending', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('available', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('carried_forward', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps('created_at', 'updated_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['leave_type_id'], ['leave_types.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'leave_type_id', 'year', name='uq_leave_balances_employee_type_year'),
    )
    op.create_index(op.f('ix_leave_balances_id'), 'leave_balances', ['id'], unique=False)
    op.create_index(op.f('ix_leave_balances_employee_id'), 'leave_balances', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_balances_leave_type_id'), 'leave_balances', ['leave_type_id'], unique=False)
    op.create_index(op.f('ix_leave_balances_year'), 'leave_balances', ['year'], unique=False)

    op.create_table(
        'leave_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=True),
        sa.Column('leave_type_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('delta_days', sa.Numeric(6, 2), nullable=False),
        sa.Column(
            'action',
            sa.Enum(
                'INITIALIZE', 'RESERVE', 'COMMIT', 'RELEASE', 'REVERSE_USED', 'CARRY_FORWARD', 'CARRY_FORWARD_EXPIRY',
                name='leavetransactionaction',
            ),
            nullable=False,
        ),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('action_by_employee_id', sa.Integer(), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['leave_type_id'], ['leave_types.id'], ),
        sa.ForeignKeyConstraint(['action_by_employee_id'], ['employees.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_leave_transactions_id'), 'leave_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_employee_id'), 'leave_transactions', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_leave_request_id'), 'leave_transactions', ['leave_request_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_year'), 'leave_transactions', ['year'], unique=False)

    op.create_table(
        'generated_documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('DRAFT', 'COMPLETED', name='documentstatus'), nullable=False, server_default='DRAFT'),
        *_timestamps('created_at'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('leave_request_id'),
    )
    op.create_index(op.f('ix_generated_documents_id'), 'generated_documents', ['id'], unique=False)

    op.create_table(
        'document_signatures',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('signer_id', sa.Integer(), nullable=False),
        sa.Column('signer_role', sa.String(length=30), nullable=False),
        sa.Column('signature_data', sa.Text(), nullable=False),
        *_timestamps('signed_at'),
        sa.ForeignKeyConstraint(['document_id'], ['generated_documents.id'], ),
        sa.ForeignKeyConstraint(['signer_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_id', 'signer_role', name='uq_document_signatures_document_role'),
    )
    op.create_index(op.f('ix_document_signatures_id'), 'document_signatures', ['id'], unique=False)
    op.create_index(op.f('ix_document_signatures_document_id'), 'document_signatures', ['document_id'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.String(length=255), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_employee_id'), 'notifications', ['employee_id'], unique=False)
    op.create_index(op.f('ix_notifications_is_read'), 'notifications', ['is_read'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('meta_json', sa.JSON(), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['actor_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)


def downgrade() -> None:
    for table in (
        'audit_logs',
        'notifications',
        'document_signatures',
        'generated_documents',
        'leave_transactions',
        'leave_balances',
        'approval_levels',
        'leave_requests',
        'leave_types',
        'holidays',
        'employees',
        'departments',
    ):
        op.drop_table(table)
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for enum_name in (
            'documentstatus', 'leavetransactionaction', 'approvalstatus', 'approvalrole',
            'hrverificationstatus', 'leavestatus', 'orgrole',
        ):
            sa.Enum(name=enum_name).drop(bind, checkfirst=True)
