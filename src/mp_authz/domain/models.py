"""Authorization domain models: pure dataclasses."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from src.mp_common.enums import OrderStatus, Role


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, supplied by the identity collaborator."""

    user_id: str
    role: Role
    shop_ids: frozenset[str] = field(default_factory=frozenset)

    def owns_shop(self, shop_id: str) -> bool:
        return shop_id in self.shop_ids


class Operation(str, Enum):
    CHECKOUT = "checkout"
    VIEW = "view"
    ADVANCE = "advance"
    CANCEL = "cancel"
    PAY = "pay"
    RECORD_MILESTONE = "record_milestone"
    LIST_PAYMENTS = "list_payments"


class Ownership(str, Enum):
    OWNER = "OWNER"  # the ordering customer
    SHOP = "SHOP"    # vendor owning the order's shop
    ANY = "ANY"


@dataclass(frozen=True)
class Rule:
    ownership: Ownership
    states: frozenset[OrderStatus] | None = None  # None = any status


class OrderLike(Protocol):
    id: str
    user_id: str
    shop_id: str
    status: OrderStatus
