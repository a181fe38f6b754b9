"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, questionnaires, readings, payments, daily_insights and sessions."""

    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(120)),

        # Stripe IDs
        sa.Column('stripe_customer_id', sa.String(255)),
        sa.Column('stripe_subscription_id', sa.String(255)),
        sa.Column('subscription_status', sa.String(20)),

        sa.Column('is_admin', sa.Boolean, server_default=sa.false(), nullable=False),

        # Password reset
        sa.Column('reset_token_hash', sa.String(64)),
        sa.Column('reset_token_expiry', sa.DateTime(timezone=True)),

        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_stripe_customer_id', 'users', ['stripe_customer_id'], unique=True)
    op.create_index('ix_users_reset_token_hash', 'users', ['reset_token_hash'])

    op.create_table(
        'questionnaires',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('birth_date', sa.String(32), nullable=False),
        sa.Column('birth_time', sa.String(32), nullable=False),
        sa.Column('birth_city', sa.String(120), nullable=False),
        sa.Column('birth_country', sa.String(120), nullable=False),
        sa.Column('zodiac_sign', sa.String(20), nullable=False),
        sa.Column('personality_traits', sa.JSON, nullable=False),
        sa.Column('spiritual_goals', sa.Text),
        sa.Column('relationship_history', sa.Text),
        sa.Column('life_intentions', sa.Text),
        sa.Column('specific_questions', sa.Text),
        sa.Column('completed_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_questionnaires_user_id', 'questionnaires', ['user_id'])

    op.create_table(
        'readings',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('questionnaire_id', sa.Integer, sa.ForeignKey('questionnaires.id'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('reading_type', sa.String(40), server_default='birth_chart', nullable=False),
        sa.Column('is_paid', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_readings_user_id', 'readings', ['user_id'])
    op.create_index('ix_readings_questionnaire_id', 'readings', ['questionnaire_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(255)),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='usd', nullable=False),
        sa.Column('payment_type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_stripe_payment_intent_id', 'payments', ['stripe_payment_intent_id'])

    op.create_table(
        'daily_insights',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('date', sa.String(10), nullable=False),
        sa.Column('zodiac_sign', sa.String(20)),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_daily_insights_date', 'daily_insights', ['date'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_sessions_user_id', 'sessions', ['user_id'])
    op.create_index('ix_sessions_expires_at', 'sessions', ['expires_at'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('sessions')
    op.drop_table('daily_insights')
    op.drop_table('payments')
    op.drop_table('readings')
    op.drop_table('questionnaires')
    op.drop_table('users')
