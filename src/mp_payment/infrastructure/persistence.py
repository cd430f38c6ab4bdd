"""PaymentRepository: raw SQL persistence for the payments table.

Transaction ownership: the caller commits.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.datetime_utils import as_utc
from src.mp_common.enums import PaymentRecordStatus
from src.mp_payment.domain.models import PaymentRecord

_INSERT_PAYMENT_SQL = text("""
    INSERT INTO payments (id, order_id, user_id, gateway_order_id, amount, currency, status)
    VALUES (:id, :order_id, :user_id, :gateway_order_id, :amount, :currency, :status)
""")

_UPDATE_PAYMENT_SQL = text("""
    UPDATE payments
    SET status = :status, gateway_payment_id = :gateway_payment_id,
        signature = :signature, refund_id = :refund_id, refund_amount = :refund_amount,
        failure_reason = :failure_reason, paid_at = :paid_at, refunded_at = :refunded_at,
        updated_at = NOW()
    WHERE id = :id
""")

_SELECT_COLUMNS = """
    id, order_id, user_id, gateway_order_id, gateway_payment_id, amount, currency,
    signature, status, refund_id, refund_amount, failure_reason,
    created_at, paid_at, refunded_at
"""

_GET_BY_ORDER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM payments WHERE order_id = :order_id
""")

_GET_BY_GATEWAY_ORDER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM payments WHERE gateway_order_id = :gateway_order_id
""")

# Ids are decimal snowflakes: shorter means older, so order by (length, text).
_LIST_PAYMENTS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM payments
    WHERE (CAST(:user_id AS TEXT) IS NULL OR user_id = :user_id)
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_id AS TEXT) IS NULL
           OR (length(id), id) < (length(CAST(:cursor_id AS TEXT)), CAST(:cursor_id AS TEXT)))
    ORDER BY length(id) DESC, id DESC
    LIMIT :limit
""")


def _row_to_payment(row: Any) -> PaymentRecord:
    return PaymentRecord(
        id=row.id,
        order_id=row.order_id,
        user_id=row.user_id,
        gateway_order_id=row.gateway_order_id,
        gateway_payment_id=row.gateway_payment_id,
        amount=row.amount,
        currency=row.currency,
        signature=row.signature,
        status=PaymentRecordStatus(row.status),
        refund_id=row.refund_id,
        refund_amount=row.refund_amount,
        failure_reason=row.failure_reason,
        created_at=as_utc(row.created_at),
        paid_at=as_utc(row.paid_at),
        refunded_at=as_utc(row.refunded_at),
    )


class PaymentRepository:
    async def save(self, db: AsyncSession, record: PaymentRecord) -> None:
        await db.execute(
            _INSERT_PAYMENT_SQL,
            {
                "id": record.id,
                "order_id": record.order_id,
                "user_id": record.user_id,
                "gateway_order_id": record.gateway_order_id,
                "amount": record.amount,
                "currency": record.currency,
                "status": record.status.value,
            },
        )

    async def get_by_order_id(self, db: AsyncSession, order_id: str) -> PaymentRecord | None:
        result = await db.execute(_GET_BY_ORDER_SQL, {"order_id": order_id})
        row = result.fetchone()
        return _row_to_payment(row) if row else None

    async def get_by_gateway_order_id(
        self, db: AsyncSession, gateway_order_id: str
    ) -> PaymentRecord | None:
        result = await db.execute(
            _GET_BY_GATEWAY_ORDER_SQL, {"gateway_order_id": gateway_order_id}
        )
        row = result.fetchone()
        return _row_to_payment(row) if row else None

    async def update(self, db: AsyncSession, record: PaymentRecord) -> None:
        await db.execute(
            _UPDATE_PAYMENT_SQL,
            {
                "id": record.id,
                "status": record.status.value,
                "gateway_payment_id": record.gateway_payment_id,
                "signature": record.signature,
                "refund_id": record.refund_id,
                "refund_amount": record.refund_amount,
                "failure_reason": record.failure_reason,
                "paid_at": record.paid_at,
                "refunded_at": record.refunded_at,
            },
        )

    async def list_payments(
        self,
        db: AsyncSession,
        user_id: str | None,
        status: PaymentRecordStatus | None,
        limit: int,
        cursor_id: str | None,
    ) -> list[PaymentRecord]:
        result = await db.execute(
            _LIST_PAYMENTS_SQL,
            {
                "user_id": user_id,
                "status": status.value if status else None,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_payment(row) for row in result.fetchall()]
