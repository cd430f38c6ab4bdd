"""006: create tracking_events table

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE tracking_events (
            id              BIGSERIAL       PRIMARY KEY,
            order_id        VARCHAR(26)     NOT NULL REFERENCES orders (id),
            event_type      VARCHAR(24)     NOT NULL,
            actor_id        VARCHAR(64),
            actor_role      VARCHAR(10),
            location        JSONB,
            description     TEXT,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_tracking_events_type CHECK (
                event_type IN ('ORDER_PLACED', 'ORDER_PACKED', 'ORDER_SHIPPED',
                               'OUT_FOR_DELIVERY', 'DELIVERED', 'CANCELLED',
                               'PAYMENT_COMPLETED', 'PAYMENT_FAILED', 'REFUNDED',
                               'DELIVERY_ATTEMPTED', 'DELAYED', 'LOCATION_UPDATED')
            )
        );
    """)
    op.execute("CREATE INDEX idx_tracking_events_order ON tracking_events (order_id, id);")
    op.execute("""
        CREATE TRIGGER trg_tracking_events_append_only
            BEFORE UPDATE OR DELETE ON tracking_events
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE tracking_events IS 'Append-only order history';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS tracking_events CASCADE;")
