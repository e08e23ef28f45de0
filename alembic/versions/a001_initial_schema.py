"""Initial schema creation

Revision ID: a001
Revises:
Create Date: 2026-01-05

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a001'
down_revision = None
branch_labels = None
depends_on = None


ASSIGNMENT_STATUS = ('GENERATED', 'APPROVED', 'OFFERED', 'CANCELLED')
REQUEST_TYPE = ('NEW_SHIFT', 'SWITCH', 'OFFER', 'OFF_REQUEST')
REQUEST_STATUS = (
    'PENDING',
    'PENDING_TARGET_USER',
    'PENDING_TARGET_MANAGER',
    'PENDING_SOURCE_MANAGER',
    'PENDING_OFFER_OWNER_MANAGER',
    'PENDING_REQUESTOR_MANAGER',
    'APPROVED',
    'REJECTED',
)


def upgrade() -> None:
    """Create initial database schema."""

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('line_id', sa.String(255), nullable=True),
        sa.Column('staff_type_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('line_id')
    )
    op.create_index('ix_users_line_id', 'users', ['line_id'])
    op.create_index('ix_users_staff_type_id', 'users', ['staff_type_id'])

    # Create user mapping tables
    op.create_table(
        'user_managers',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('manager_user_id', sa.String(36), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['manager_user_id'], ['users.id']),
        sa.UniqueConstraint('user_id', 'manager_user_id', name='uq_user_manager')
    )
    op.create_index('ix_user_managers_user_id', 'user_managers', ['user_id'])
    op.create_index('ix_user_managers_manager_user_id', 'user_managers', ['manager_user_id'])

    op.create_table(
        'user_departments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('department_id', sa.String(36), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.UniqueConstraint('user_id', 'department_id', name='uq_user_department')
    )
    op.create_index('ix_user_departments_user_id', 'user_departments', ['user_id'])

    op.create_table(
        'user_divisions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('division_id', sa.String(36), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.UniqueConstraint('user_id', 'division_id', name='uq_user_division')
    )
    op.create_index('ix_user_divisions_user_id', 'user_divisions', ['user_id'])

    # Create shift reference tables
    op.create_table(
        'shift_types',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'shift_periods',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('DRAFT', 'GENERATED', 'APPROVED', name='periodstatus'), nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Create shift_assignments table
    op.create_table(
        'shift_assignments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('shift_period_id', sa.String(36), nullable=False),
        sa.Column('shift_date', sa.Date(), nullable=False),
        sa.Column('division_id', sa.String(36), nullable=True),
        sa.Column('department_id', sa.String(36), nullable=False),
        sa.Column('staff_type_id', sa.String(36), nullable=False),
        sa.Column('shift_type_id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('source_type', sa.Enum('TEMPLATE', 'MANUAL', name='assignmentsource'), nullable=False),
        sa.Column('status', sa.Enum(*ASSIGNMENT_STATUS, name='assignmentstatus'), nullable=False),
        sa.Column('is_absence', sa.Boolean(), nullable=False),
        sa.Column('absence_type', sa.String(50), nullable=True),
        sa.Column('status_comment', sa.String(1000), nullable=True),
        sa.Column('staff_shift_rule_id', sa.String(36), nullable=True),
        sa.Column('required_staff_snapshot', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['shift_period_id'], ['shift_periods.id']),
        sa.ForeignKeyConstraint(['shift_type_id'], ['shift_types.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.UniqueConstraint(
            'shift_period_id', 'shift_date', 'user_id', 'shift_type_id', 'department_id', 'division_id',
            name='uq_assignment_slot'
        )
    )
    op.create_index('ix_shift_assignments_shift_period_id', 'shift_assignments', ['shift_period_id'])
    op.create_index('ix_shift_assignments_shift_date', 'shift_assignments', ['shift_date'])
    op.create_index('ix_shift_assignments_user_id', 'shift_assignments', ['user_id'])
    op.create_index('ix_shift_assignments_status', 'shift_assignments', ['status'])

    # Create user_absences table
    op.create_table(
        'user_absences',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('absence_type', sa.String(50), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('created_by', sa.String(36), nullable=True),
        sa.Column('comment', sa.String(1000), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'])
    )
    op.create_index('ix_user_absences_user_id', 'user_absences', ['user_id'])
    op.create_index('ix_user_absences_start_date', 'user_absences', ['start_date'])
    op.create_index('ix_user_absences_end_date', 'user_absences', ['end_date'])

    # Create shift_offers table
    op.create_table(
        'shift_offers',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('shift_assignment_id', sa.String(36), nullable=False),
        sa.Column('offered_by_user_id', sa.String(36), nullable=False),
        sa.Column('offered_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'CANCELLED', 'TAKEN', name='offerstatus'), nullable=False),
        sa.Column('visibility', sa.Enum('ALL_ELIGIBLE', 'TARGET_USER', name='offervisibility'), nullable=False),
        sa.Column('target_user_id', sa.String(36), nullable=True),
        sa.Column('note', sa.String(1000), nullable=True),
        sa.Column('original_assignment_status', sa.Enum(*ASSIGNMENT_STATUS, name='assignmentstatus'), nullable=True),
        sa.Column('taken_by_user_id', sa.String(36), nullable=True),
        sa.Column('taken_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_by_user_id', sa.String(36), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['shift_assignment_id'], ['shift_assignments.id']),
        sa.ForeignKeyConstraint(['offered_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['target_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['taken_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['cancelled_by_user_id'], ['users.id']),
        sa.UniqueConstraint('shift_assignment_id')
    )
    op.create_index('ix_shift_offers_offered_by_user_id', 'shift_offers', ['offered_by_user_id'])
    op.create_index('ix_shift_offers_status', 'shift_offers', ['status'])

    # Create shift_requests table
    op.create_table(
        'shift_requests',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('request_type', sa.Enum(*REQUEST_TYPE, name='requesttype'), nullable=False),
        sa.Column('request_status', sa.Enum(*REQUEST_STATUS, name='requeststatus'), nullable=False),
        sa.Column('requested_by_user_id', sa.String(36), nullable=False),
        sa.Column('target_user_id', sa.String(36), nullable=True),
        sa.Column('inbox_user_id', sa.String(36), nullable=True),
        sa.Column('manager_user_id', sa.String(36), nullable=True),
        sa.Column('division_id', sa.String(36), nullable=True),
        sa.Column('requested_department_id', sa.String(36), nullable=True),
        sa.Column('requested_shift_type_id', sa.String(36), nullable=True),
        sa.Column('requested_shift_date', sa.Date(), nullable=True),
        sa.Column('requested_absence_type', sa.String(50), nullable=True),
        sa.Column('shift_assignment_id', sa.String(36), nullable=True),
        sa.Column('source_shift_assignment_id', sa.String(36), nullable=True),
        sa.Column('target_shift_assignment_id', sa.String(36), nullable=True),
        sa.Column('shift_offer_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('decision_by_user_id', sa.String(36), nullable=True),
        sa.Column('decision_comment', sa.String(1000), nullable=True),
        sa.Column('last_action_at', sa.DateTime(), nullable=True),
        sa.Column('last_action_by_user_id', sa.String(36), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['requested_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['target_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['inbox_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['manager_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['decision_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['last_action_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['shift_assignment_id'], ['shift_assignments.id']),
        sa.ForeignKeyConstraint(['source_shift_assignment_id'], ['shift_assignments.id']),
        sa.ForeignKeyConstraint(['target_shift_assignment_id'], ['shift_assignments.id']),
        sa.ForeignKeyConstraint(['shift_offer_id'], ['shift_offers.id'])
    )
    op.create_index('ix_shift_requests_request_type', 'shift_requests', ['request_type'])
    op.create_index('ix_shift_requests_request_status', 'shift_requests', ['request_status'])
    op.create_index('ix_shift_requests_requested_by_user_id', 'shift_requests', ['requested_by_user_id'])
    op.create_index('ix_shift_requests_inbox_user_id', 'shift_requests', ['inbox_user_id'])
    op.create_index('ix_shift_requests_division_id', 'shift_requests', ['division_id'])
    op.create_index('ix_shift_requests_shift_assignment_id', 'shift_requests', ['shift_assignment_id'])

    # Create shift_assignment_user_history table
    op.create_table(
        'shift_assignment_user_history',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('shift_assignment_id', sa.String(36), nullable=False),
        sa.Column('from_user_id', sa.String(36), nullable=True),
        sa.Column('to_user_id', sa.String(36), nullable=False),
        sa.Column('change_reason', sa.Enum(*REQUEST_TYPE, name='requesttype'), nullable=False),
        sa.Column('shift_request_id', sa.String(36), nullable=True),
        sa.Column('shift_offer_id', sa.String(36), nullable=True),
        sa.Column('shift_date', sa.Date(), nullable=False),
        sa.Column('shift_type_id', sa.String(36), nullable=False),
        sa.Column('department_id', sa.String(36), nullable=False),
        sa.Column('division_id', sa.String(36), nullable=True),
        sa.Column('comment', sa.String(1000), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['shift_assignment_id'], ['shift_assignments.id']),
        sa.ForeignKeyConstraint(['from_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['to_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['shift_request_id'], ['shift_requests.id']),
        sa.ForeignKeyConstraint(['shift_offer_id'], ['shift_offers.id']),
        sa.UniqueConstraint(
            'shift_assignment_id', 'shift_request_id', 'change_reason',
            name='uq_history_assignment_request_reason'
        )
    )
    op.create_index(
        'ix_shift_assignment_user_history_shift_assignment_id',
        'shift_assignment_user_history', ['shift_assignment_id']
    )
    op.create_index(
        'ix_shift_assignment_user_history_shift_request_id',
        'shift_assignment_user_history', ['shift_request_id']
    )

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('recipient_user_id', sa.String(36), nullable=False),
        sa.Column('notification_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.String(1000), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('shift_request_id', sa.String(36), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('push_sent_at', sa.DateTime(), nullable=True),
        sa.Column('push_attempts', sa.Integer(), nullable=False),
        sa.Column('push_last_error', sa.String(1000), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['recipient_user_id'], ['users.id'])
    )
    op.create_index('ix_notifications_recipient_user_id', 'notifications', ['recipient_user_id'])
    op.create_index('ix_notifications_shift_request_id', 'notifications', ['shift_request_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('notifications')
    op.drop_table('shift_assignment_user_history')
    op.drop_table('shift_requests')
    op.drop_table('shift_offers')
    op.drop_table('user_absences')
    op.drop_table('shift_assignments')
    op.drop_table('shift_periods')
    op.drop_table('shift_types')
    op.drop_table('user_divisions')
    op.drop_table('user_departments')
    op.drop_table('user_managers')
    op.drop_table('users')
