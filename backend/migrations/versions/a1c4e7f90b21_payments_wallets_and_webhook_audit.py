"""payments, freelancer wallets, payout requests and webhook audit

Revision ID: a1c4e7f90b21
Revises:
Create Date: 2026-10-18 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c4e7f90b21'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(14, 2)


def upgrade():
    op.create_table(
        'contracts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('freelancer_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_contracts_client_id', 'contracts', ['client_id'])
    op.create_index('ix_contracts_freelancer_id', 'contracts', ['freelancer_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.String(length=40), primary_key=True),
        sa.Column('contract_id', sa.Integer(), sa.ForeignKey('contracts.id'), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('freelancer_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('payment_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('processor_order_id', sa.String(length=64), nullable=True),
        sa.Column('processor_payment_id', sa.String(length=64), nullable=True),
        sa.Column('payment_link', sa.String(length=512), nullable=True),
        sa.Column('platform_fee', MONEY, nullable=True),
        sa.Column('net_amount', MONEY, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
    )
    op.create_index('ix_payments_contract_id', 'payments', ['contract_id'])
    op.create_index('ix_payments_client_id', 'payments', ['client_id'])
    op.create_index('ix_payments_freelancer_id', 'payments', ['freelancer_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_processor_order_id', 'payments', ['processor_order_id'], unique=True)

    op.create_table(
        'freelancer_wallets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('freelancer_id', sa.Integer(), nullable=False),
        sa.Column('available_balance', MONEY, nullable=False),
        sa.Column('reserved_balance', MONEY, nullable=False),
        sa.Column('total_earned', MONEY, nullable=False),
        sa.Column('paid_out_total', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('available_balance >= 0', name='ck_wallets_available_non_negative'),
        sa.CheckConstraint('reserved_balance >= 0', name='ck_wallets_reserved_non_negative'),
    )
    op.create_index('ix_freelancer_wallets_freelancer_id', 'freelancer_wallets', ['freelancer_id'], unique=True)

    op.create_table(
        'wallet_txns',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('freelancer_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=8), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('reference', sa.String(length=80), nullable=True),
        sa.Column('idempotency_key', sa.String(length=160), nullable=False),
        sa.Column('note', sa.String(length=240), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_wallet_txns_freelancer_id', 'wallet_txns', ['freelancer_id'])
    op.create_index('ix_wallet_txns_reference', 'wallet_txns', ['reference'])
    op.create_index('ix_wallet_txns_idempotency_key', 'wallet_txns', ['idempotency_key'], unique=True)

    op.create_table(
        'payout_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('freelancer_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('bank_details', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('decided_by', sa.Integer(), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_payout_requests_amount_positive'),
    )
    op.create_index('ix_payout_requests_freelancer_id', 'payout_requests', ['freelancer_id'])
    op.create_index('ix_payout_requests_status', 'payout_requests', ['status'])

    op.create_table(
        'payment_webhooks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('provider', sa.String(length=32), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('processor_order_id', sa.String(length=64), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('signature', sa.String(length=160), nullable=True),
        sa.Column('raw_payload', sa.LargeBinary(), nullable=False),
        sa.Column('outcome', sa.String(length=32), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_payment_webhooks_processor_order_id', 'payment_webhooks', ['processor_order_id'])
    op.create_index('ix_payment_webhooks_order_event', 'payment_webhooks', ['processor_order_id', 'event_type'])

    op.create_table(
        'rejected_webhooks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('reason', sa.String(length=64), nullable=False),
        sa.Column('remote_addr', sa.String(length=64), nullable=True),
        sa.Column('signature', sa.String(length=160), nullable=True),
        sa.Column('raw_payload', sa.LargeBinary(), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=16), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade():
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('rejected_webhooks')
    op.drop_index('ix_payment_webhooks_order_event', table_name='payment_webhooks')
    op.drop_index('ix_payment_webhooks_processor_order_id', table_name='payment_webhooks')
    op.drop_table('payment_webhooks')
    op.drop_index('ix_payout_requests_status', table_name='payout_requests')
    op.drop_index('ix_payout_requests_freelancer_id', table_name='payout_requests')
    op.drop_table('payout_requests')
    op.drop_index('ix_wallet_txns_idempotency_key', table_name='wallet_txns')
    op.drop_index('ix_wallet_txns_reference', table_name='wallet_txns')
    op.drop_index('ix_wallet_txns_freelancer_id', table_name='wallet_txns')
    op.drop_table('wallet_txns')
    op.drop_index('ix_freelancer_wallets_freelancer_id', table_name='freelancer_wallets')
    op.drop_table('freelancer_wallets')
    op.drop_index('ix_payments_processor_order_id', table_name='payments')
    op.drop_index('ix_payments_status', table_name='payments')
    op.drop_index('ix_payments_freelancer_id', table_name='payments')
    op.drop_index('ix_payments_client_id', table_name='payments')
    op.drop_index('ix_payments_contract_id', table_name='payments')
    op.drop_table('payments')
    op.drop_index('ix_contracts_freelancer_id', table_name='contracts')
    op.drop_index('ix_contracts_client_id', table_name='contracts')
    op.drop_table('contracts')
