"""Unique payment intent per payment

Revision ID: 0002_unique_payment_intent
Revises: 0001_initial_schema
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0002_unique_payment_intent'
down_revision: Union[str, None] = '0001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Replayed Stripe events must not record the same charge twice."""
    op.drop_index('ix_payments_stripe_payment_intent_id', table_name='payments')
    op.create_index(
        'ix_payments_stripe_payment_intent_id',
        'payments',
        ['stripe_payment_intent_id'],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index('ix_payments_stripe_payment_intent_id', table_name='payments')
    op.create_index('ix_payments_stripe_payment_intent_id', 'payments', ['stripe_payment_intent_id'])
