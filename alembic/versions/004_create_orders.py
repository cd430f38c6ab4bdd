"""004: create orders table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(26)     PRIMARY KEY,
            order_number        VARCHAR(32)     NOT NULL,
            user_id             VARCHAR(64)     NOT NULL REFERENCES users (id),
            shop_id             VARCHAR(64)     NOT NULL REFERENCES shops (id),
            items               JSONB           NOT NULL,
            subtotal            BIGINT          NOT NULL,
            tax                 BIGINT          NOT NULL,
            shipping            BIGINT          NOT NULL,
            total               BIGINT          NOT NULL,
            currency            VARCHAR(3)      NOT NULL DEFAULT 'INR',
            shipping_address    JSONB           NOT NULL,
            delivery_type       VARCHAR(10)     NOT NULL,
            payment_method      VARCHAR(16)     NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PROCESSING',
            payment_status      VARCHAR(20)     NOT NULL DEFAULT 'PAYMENT_PENDING',
            gateway_order_id    VARCHAR(64),
            gateway_payment_id  VARCHAR(64),
            cancel_reason       TEXT,
            cancelled_by        VARCHAR(10),
            version             INT             NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            status_changed_at   TIMESTAMPTZ,
            delivered_at        TIMESTAMPTZ,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_orders_order_number       UNIQUE (order_number),
            CONSTRAINT ck_orders_amounts_gte_0      CHECK (
                subtotal >= 0 AND tax >= 0 AND shipping >= 0
            ),
            CONSTRAINT ck_orders_total              CHECK (total = subtotal + tax + shipping),
            CONSTRAINT ck_orders_items_nonempty     CHECK (jsonb_array_length(items) > 0),
            CONSTRAINT ck_orders_delivery_type      CHECK (delivery_type IN ('delivery', 'pickup')),
            CONSTRAINT ck_orders_payment_method     CHECK (
                payment_method IN ('card', 'upi', 'netbanking', 'wallet')
            ),
            CONSTRAINT ck_orders_status             CHECK (
                status IN ('PROCESSING', 'PACKED', 'SHIPPED', 'OUT_FOR_DELIVERY',
                           'DELIVERED', 'CANCELLED')
            ),
            CONSTRAINT ck_orders_payment_status     CHECK (
                payment_status IN ('PAYMENT_PENDING', 'PAYMENT_COMPLETED',
                                   'PAYMENT_FAILED', 'REFUNDED')
            ),
            CONSTRAINT ck_orders_refund_needs_cancel CHECK (
                payment_status <> 'REFUNDED' OR status = 'CANCELLED'
            ),
            CONSTRAINT ck_orders_cancelled_by       CHECK (
                cancelled_by IS NULL OR cancelled_by IN ('CUSTOMER', 'VENDOR', 'ADMIN')
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_user ON orders (user_id, length(id) DESC, id DESC);")
    op.execute("CREATE INDEX idx_orders_shop ON orders (shop_id, length(id) DESC, id DESC);")
    op.execute("CREATE UNIQUE INDEX uq_orders_gateway_order ON orders (gateway_order_id);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Order ledger: status + payment status, versioned updates';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
