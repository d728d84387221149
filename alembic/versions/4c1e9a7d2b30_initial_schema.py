"""Initial schema: users, packages, clients, plans and plan assignments

Revision ID: 4c1e9a7d2b30
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1e9a7d2b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACCESS_FLAGS = (
    'video_access',
    'diet_plan_access',
    'workout_plan_access',
    'recorded_sessions_access',
    'personalized_diet_access',
    'weekly_check_in_access',
    'live_group_training_access',
    'one_on_one_call_access',
    'habit_coaching_access',
    'performance_tracking_access',
    'priority_support_access',
)


def _plan_bookkeeping_columns(table: str) -> list[sa.Column]:
    return [
        sa.Column('is_template', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('assigned_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cloned_from_id', sa.Uuid(), sa.ForeignKey(f'{table}.id', ondelete='SET NULL'), nullable=True),
        sa.Column('times_cloned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role', sa.Enum('ADMIN', 'TRAINER', 'CLIENT', name='role', native_enum=False), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'packages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('features', sa.JSON(), nullable=False),
        *[sa.Column(flag, sa.Boolean(), nullable=False, server_default=sa.false()) for flag in ACCESS_FLAGS],
        sa.Column('live_sessions_per_month', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('duration_options', sa.JSON(), nullable=False),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('gender', sa.String(), nullable=True),
        sa.Column('height', sa.Float(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('goal', sa.String(), nullable=True),
        sa.Column('fitness_level', sa.Enum('BEGINNER', 'INTERMEDIATE', 'ADVANCED', name='fitnesslevel', native_enum=False), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('trainer_id', sa.Uuid(), nullable=True),
        sa.Column('package_id', sa.Uuid(), nullable=True),
        sa.Column('package_duration', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', 'ENQUIRED', name='clientstatus', native_enum=False), nullable=False),
        sa.Column('subscription_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_renewal_type', sa.Enum('MONTHLY', 'YEARLY', name='renewaltype', native_enum=False), nullable=True),
        sa.Column('subscription_auto_renewal', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['trainer_id'], ['users.id']),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index(op.f('ix_clients_email'), 'clients', ['email'], unique=True)
    op.create_index(op.f('ix_clients_trainer_id'), 'clients', ['trainer_id'], unique=False)

    op.create_table(
        'workout_plans',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('goal', sa.String(), nullable=True),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('duration_weeks', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('exercises', sa.JSON(), nullable=False),
        sa.Column('difficulty', sa.String(), nullable=True),
        *_plan_bookkeeping_columns('workout_plans'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_workout_plans_client_id'), 'workout_plans', ['client_id'], unique=False)

    op.create_table(
        'diet_plans',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=True),
        sa.Column('trainer_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('target_calories', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('protein', sa.Float(), nullable=True),
        sa.Column('carbs', sa.Float(), nullable=True),
        sa.Column('fats', sa.Float(), nullable=True),
        sa.Column('meals', sa.JSON(), nullable=False),
        sa.Column('water_intake_goal', sa.Float(), nullable=True),
        *_plan_bookkeeping_columns('diet_plans'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['trainer_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_diet_plans_client_id'), 'diet_plans', ['client_id'], unique=False)

    # one current plan per client and kind; a racing second insert fails here
    op.create_table(
        'workout_plan_assignments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('workout_plan_id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['workout_plan_id'], ['workout_plans.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id')
    )
    op.create_index(op.f('ix_workout_plan_assignments_workout_plan_id'), 'workout_plan_assignments', ['workout_plan_id'], unique=False)

    op.create_table(
        'diet_plan_assignments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('diet_plan_id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['diet_plan_id'], ['diet_plans.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id')
    )
    op.create_index(op.f('ix_diet_plan_assignments_diet_plan_id'), 'diet_plan_assignments', ['diet_plan_id'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('target_id', sa.String(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_audit_logs_action'), table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index(op.f('ix_diet_plan_assignments_diet_plan_id'), table_name='diet_plan_assignments')
    op.drop_table('diet_plan_assignments')
    op.drop_index(op.f('ix_workout_plan_assignments_workout_plan_id'), table_name='workout_plan_assignments')
    op.drop_table('workout_plan_assignments')
    op.drop_index(op.f('ix_diet_plans_client_id'), table_name='diet_plans')
    op.drop_table('diet_plans')
    op.drop_index(op.f('ix_workout_plans_client_id'), table_name='workout_plans')
    op.drop_table('workout_plans')
    op.drop_index(op.f('ix_clients_trainer_id'), table_name='clients')
    op.drop_index(op.f('ix_clients_email'), table_name='clients')
    op.drop_table('clients')
    op.drop_table('packages')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
