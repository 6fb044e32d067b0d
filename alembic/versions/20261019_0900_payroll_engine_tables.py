"""Add payroll engine tables

Revision ID: 20261019_0900
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration creates the payroll engine schema:
- employees: Employees consumed by payroll generation
- payroll_runs: One row per generated pay period (unique start date)
- payroll_entries: Per-employee computed pay, unique per run
- loans / loan_payments: Employee loans and their immutable ledger
- vacation_requests: Approved leave, optionally linked to a payroll entry
- employee_events: Bonuses, allowances, deductions, penalties
- notifications: Post-run vacation and loan notifications
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_0900'
down_revision = None
branch_labels = None
depends_on = None


# Enum labels are the Python member names, as SQLAlchemy stores them
employee_status = sa.Enum('ACTIVE', 'ON_LEAVE', 'INACTIVE', 'TERMINATED', name='employeestatus')
payroll_run_status = sa.Enum('COMPLETED', 'CANCELLED', name='payrollrunstatus')
loan_status = sa.Enum('PENDING', 'ACTIVE', 'PAUSED', 'COMPLETED', 'CANCELLED', 'REJECTED', name='loanstatus')
loan_payment_source = sa.Enum('PAYROLL', 'MANUAL', name='loanpaymentsource')
vacation_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='vacationstatus')
leave_type = sa.Enum('ANNUAL', 'SICK', 'EMERGENCY', 'UNPAID', 'OTHER', name='leavetype')
event_type = sa.Enum('BONUS', 'ALLOWANCE', 'DEDUCTION', 'PENALTY', 'OTHER', name='eventtype')
event_status = sa.Enum('ACTIVE', 'CANCELLED', name='eventstatus')
recurrence_type = sa.Enum('NONE', 'MONTHLY', name='recurrencetype')
notification_type = sa.Enum('VACATION_APPROVED', 'LOAN_DEDUCTION', name='notificationtype')
notification_priority = sa.Enum('LOW', 'MEDIUM', 'HIGH', name='notificationpriority')

ENUMS = (
    employee_status, payroll_run_status, loan_status, loan_payment_source,
    vacation_status, leave_type, event_type, event_status, recurrence_type,
    notification_type, notification_priority,
)


def _money(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(15, 2), nullable=nullable, server_default='0', **kwargs)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ===========================================
    # EMPLOYEES
    # ===========================================
    op.create_table('employees',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_code', sa.String(50), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        _money('salary', comment='Monthly contracted salary'),
        sa.Column('standard_working_days', sa.Integer(), nullable=False, server_default='26'),
        sa.Column('status', employee_status, nullable=False, server_default='ACTIVE'),
        *_timestamps(),
        sa.UniqueConstraint('employee_code', name='uq_employees_employee_code'),
    )
    op.create_index('ix_employees_status', 'employees', ['status'])

    # ===========================================
    # PAYROLL RUNS AND ENTRIES
    # ===========================================
    op.create_table('payroll_runs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('period', sa.String(100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        _money('gross_amount'),
        _money('total_deductions'),
        _money('net_amount'),
        sa.Column('status', payroll_run_status, nullable=False, server_default='COMPLETED'),
        sa.Column('overrides', sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_payroll_runs_start_date', 'payroll_runs', ['start_date'], unique=True)
    op.create_index('ix_payroll_runs_end_date', 'payroll_runs', ['end_date'])

    op.create_table('payroll_entries',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('payroll_run_id', sa.Uuid(), sa.ForeignKey('payroll_runs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        _money('contract_salary'),
        _money('base_salary'),
        _money('bonus_amount'),
        _money('tax_deduction'),
        _money('social_security_deduction'),
        _money('health_insurance_deduction'),
        _money('loan_deduction'),
        _money('other_deductions'),
        sa.Column('working_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('actual_working_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('vacation_days', sa.Integer(), nullable=False, server_default='0'),
        _money('gross_pay'),
        _money('net_pay'),
        sa.Column('adjustment_reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('payroll_run_id', 'employee_id', name='uq_payroll_entry_run_employee'),
    )
    op.create_index('ix_payroll_entries_payroll_run_id', 'payroll_entries', ['payroll_run_id'])
    op.create_index('ix_payroll_entries_employee_id', 'payroll_entries', ['employee_id'])

    # ===========================================
    # LOANS
    # ===========================================
    op.create_table('loans',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('monthly_deduction', sa.Numeric(15, 2), nullable=False),
        sa.Column('remaining_amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('interest_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', loan_status, nullable=False, server_default='PENDING'),
        sa.Column('reason', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_loans_employee_id', 'loans', ['employee_id'])
    op.create_index('ix_loans_status', 'loans', ['status'])

    op.create_table('loan_payments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('loan_id', sa.Uuid(), sa.ForeignKey('loans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('payroll_run_id', sa.Uuid(), sa.ForeignKey('payroll_runs.id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('applied_date', sa.Date(), nullable=False),
        sa.Column('source', loan_payment_source, nullable=False, server_default='PAYROLL'),
        sa.Column('notes', sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_loan_payments_loan_id', 'loan_payments', ['loan_id'])
    op.create_index('ix_loan_payments_employee_id', 'loan_payments', ['employee_id'])
    op.create_index('ix_loan_payments_payroll_run_id', 'loan_payments', ['payroll_run_id'])

    # ===========================================
    # VACATIONS AND EVENTS
    # ===========================================
    op.create_table('vacation_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('days', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False, server_default='ANNUAL'),
        sa.Column('deduct_from_salary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', vacation_status, nullable=False, server_default='PENDING'),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column(
            'linked_payroll_entry_id', sa.Uuid(),
            sa.ForeignKey('payroll_entries.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('audit_log', sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_vacation_requests_employee_id', 'vacation_requests', ['employee_id'])
    op.create_index('ix_vacation_requests_status', 'vacation_requests', ['status'])
    op.create_index('ix_vacation_requests_linked_payroll_entry_id', 'vacation_requests', ['linked_payroll_entry_id'])

    op.create_table('employee_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_type', event_type, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _money('amount'),
        sa.Column('event_date', sa.Date(), nullable=False),
        sa.Column('affects_payroll', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', event_status, nullable=False, server_default='ACTIVE'),
        sa.Column('recurrence_type', recurrence_type, nullable=False, server_default='NONE'),
        sa.Column('recurrence_end_date', sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_employee_events_employee_id', 'employee_events', ['employee_id'])
    op.create_index('ix_employee_events_event_type', 'employee_events', ['event_type'])
    op.create_index('ix_employee_events_event_date', 'employee_events', ['event_date'])

    # ===========================================
    # NOTIFICATIONS
    # ===========================================
    op.create_table('notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('employee_id', sa.Uuid(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('payroll_run_id', sa.Uuid(), sa.ForeignKey('payroll_runs.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('notification_type', notification_type, nullable=False),
        sa.Column('priority', notification_priority, nullable=False, server_default='MEDIUM'),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_notifications_employee_id', 'notifications', ['employee_id'])
    op.create_index('ix_notifications_payroll_run_id', 'notifications', ['payroll_run_id'])
    op.create_index('ix_notifications_notification_type', 'notifications', ['notification_type'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('employee_events')
    op.drop_table('vacation_requests')
    op.drop_table('loan_payments')
    op.drop_table('loans')
    op.drop_table('payroll_entries')
    op.drop_table('payroll_runs')
    op.drop_table('employees')

    bind = op.get_bind()
    for enum in ENUMS:
        enum.drop(bind, checkfirst=True)
