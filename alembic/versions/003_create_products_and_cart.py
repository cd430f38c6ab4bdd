"""003: create products and cart_items tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE products (
            id              VARCHAR(64)     PRIMARY KEY,
            shop_id         VARCHAR(64)     NOT NULL REFERENCES shops (id),
            name            VARCHAR(200)    NOT NULL,
            unit            VARCHAR(20)     NOT NULL DEFAULT 'piece',
            price           BIGINT          NOT NULL,
            tax_rate_bps    INT             NOT NULL DEFAULT 0,
            stock           INT             NOT NULL DEFAULT 0,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_products_price_gte_0  CHECK (price >= 0),
            CONSTRAINT ck_products_tax_rate     CHECK (tax_rate_bps BETWEEN 0 AND 10000),
            CONSTRAINT ck_products_stock_gte_0  CHECK (stock >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_products_shop ON products (shop_id);")
    op.execute("""
        CREATE TRIGGER trg_products_updated_at
            BEFORE UPDATE ON products
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE products IS 'Vendor catalogue; stock is decremented by order reservations';")

    op.execute("""
        CREATE TABLE cart_items (
            user_id         VARCHAR(64)     NOT NULL REFERENCES users (id),
            product_id      VARCHAR(64)     NOT NULL REFERENCES products (id),
            quantity        INT             NOT NULL,
            added_at        TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, product_id),
            CONSTRAINT ck_cart_items_quantity CHECK (quantity > 0)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS cart_items CASCADE;")
    op.execute("DROP TABLE IF EXISTS products CASCADE;")
