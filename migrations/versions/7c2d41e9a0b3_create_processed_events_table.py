"""Create processed_events table

Revision ID: 7c2d41e9a0b3
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7c2d41e9a0b3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('processed_events',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('processed_at', sa.BigInteger(), nullable=False),
        sa.Column('expires_at', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('processed_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_processed_events_expires_at'), ['expires_at'], unique=False)


def downgrade():
    with op.batch_alter_table('processed_events', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_processed_events_expires_at'))

    op.drop_table('processed_events')
