"""005: create payments table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payments (
            id                  VARCHAR(26)     PRIMARY KEY,
            order_id            VARCHAR(26)     NOT NULL REFERENCES orders (id),
            user_id             VARCHAR(64)     NOT NULL REFERENCES users (id),
            gateway_order_id    VARCHAR(64)     NOT NULL,
            gateway_payment_id  VARCHAR(64),
            amount              BIGINT          NOT NULL,
            currency            VARCHAR(3)      NOT NULL DEFAULT 'INR',
            signature           VARCHAR(256),
            status              VARCHAR(10)     NOT NULL DEFAULT 'PENDING',
            refund_id           VARCHAR(64),
            refund_amount       BIGINT,
            failure_reason      TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            paid_at             TIMESTAMPTZ,
            refunded_at         TIMESTAMPTZ,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payments_order            UNIQUE (order_id),
            CONSTRAINT uq_payments_gateway_order    UNIQUE (gateway_order_id),
            CONSTRAINT ck_payments_amount_gt_0      CHECK (amount > 0),
            CONSTRAINT ck_payments_status           CHECK (
                status IN ('PENDING', 'COMPLETED', 'FAILED', 'REFUNDED')
            ),
            CONSTRAINT ck_payments_refund_lte_amount CHECK (
                refund_amount IS NULL OR (refund_amount >= 0 AND refund_amount <= amount)
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_payments_updated_at
            BEFORE UPDATE ON payments
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("CREATE INDEX idx_payments_user ON payments (user_id, length(id) DESC, id DESC);")
    op.execute("COMMENT ON TABLE payments IS 'Gateway payment records: written only by the order ledger';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payments CASCADE;")
