"""Business identifiers: order ids, payment ids and customer-facing order numbers.

Order and payment ids are snowflake integers rendered as decimal strings.
They grow monotonically per node, so ``ORDER BY id DESC`` is newest-first and
the last id of a page is a valid pagination cursor.

Order numbers are what customers see on receipts and what the gateway gets as
its ``receipt`` field: ``DMP-`` followed by the order id in Crockford base32.
"""

import threading
import time
from config.settings import settings

_CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ORDER_NUMBER_PREFIX = "DMP-"


class SnowflakeIdGenerator:
    """41 bits of milliseconds since ``EPOCH_MS``, 10 bits of node id, 12 bits of sequence."""

    EPOCH_MS = 1_700_000_000_000
    _NODE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, node_id: int = 0) -> None:
        if not 0 <= node_id < (1 << self._NODE_BITS):
            raise ValueError(f"node_id must be 0-{(1 << self._NODE_BITS) - 1}, got {node_id}")
        self._node_id = node_id
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_int(self) -> int:
        with self._lock:
            now_ms = int(time.time() * 1000)
            if now_ms < self._last_ms:
                # Clock stepped backwards; keep ids monotonic.
                now_ms = self._last_ms
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    while now_ms <= self._last_ms:
                        now_ms = int(time.time() * 1000)
            else:
                self._sequence = 0
            self._last_ms = now_ms
            return (
                ((now_ms - self.EPOCH_MS) << (self._NODE_BITS + self._SEQUENCE_BITS))
                | (self._node_id << self._SEQUENCE_BITS)
                | self._sequence
            )

    def next_id(self) -> str:
        return str(self.next_int())


_default_generator = SnowflakeIdGenerator(settings.NODE_ID)


def generate_id() -> str:
    return _default_generator.next_id()


def generate_order_number(order_id: str) -> str:
    """``DMP-`` + Crockford base32 of the numeric order id (reversible, unique per id)."""
    value = int(order_id)
    if value < 0:
        raise ValueError(f"order id must be non-negative, got {order_id}")
    digits = []
    while True:
        value, rem = divmod(value, 32)
        digits.append(_CROCKFORD[rem])
        if value == 0:
            break
    return ORDER_NUMBER_PREFIX + "".join(reversed(digits))


def order_id_from_number(order_number: str) -> str:
    """Inverse of ``generate_order_number``; raises ValueError on a malformed number."""
    if not order_number.startswith(ORDER_NUMBER_PREFIX):
        raise ValueError(f"not an order number: {order_number!r}")
    body = order_number[len(ORDER_NUMBER_PREFIX):].upper()
    if not body:
        raise ValueError(f"not an order number: {order_number!r}")
    value = 0
    for ch in body:
        idx = _CROCKFORD.find(ch)
        if idx < 0:
            raise ValueError(f"invalid character {ch!r} in order number {order_number!r}")
        value = value * 32 + idx
    return str(value)
