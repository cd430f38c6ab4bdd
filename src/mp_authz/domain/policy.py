"""Authorization policy table: (operation, role) -> Rule.

A missing entry means deny. Rules check ownership first, then the order
statuses in which the role may act (e.g. a customer may only self-cancel
while the order is still PROCESSING).
"""

from src.mp_authz.domain.models import Actor, Operation, OrderLike, Ownership, Rule
from src.mp_common.enums import OrderStatus, Role
from src.mp_common.errors import UnauthorizedTransitionError

CANCELLABLE_STATES = frozenset(
    {OrderStatus.PROCESSING, OrderStatus.PACKED, OrderStatus.SHIPPED}
)

POLICY_TABLE: dict[tuple[Operation, Role], Rule] = {
    (Operation.CHECKOUT, Role.CUSTOMER): Rule(Ownership.ANY),
    (Operation.VIEW, Role.CUSTOMER): Rule(Ownership.OWNER),
    (Operation.VIEW, Role.VENDOR): Rule(Ownership.SHOP),
    (Operation.VIEW, Role.ADMIN): Rule(Ownership.ANY),
    (Operation.ADVANCE, Role.VENDOR): Rule(Ownership.SHOP),
    (Operation.ADVANCE, Role.ADMIN): Rule(Ownership.ANY),
    (Operation.CANCEL, Role.CUSTOMER): Rule(
        Ownership.OWNER, frozenset({OrderStatus.PROCESSING})
    ),
    (Operation.CANCEL, Role.VENDOR): Rule(Ownership.SHOP, CANCELLABLE_STATES),
    (Operation.CANCEL, Role.ADMIN): Rule(Ownership.ANY, CANCELLABLE_STATES),
    (Operation.PAY, Role.CUSTOMER): Rule(Ownership.OWNER),
    (Operation.RECORD_MILESTONE, Role.VENDOR): Rule(Ownership.SHOP),
    (Operation.RECORD_MILESTONE, Role.ADMIN): Rule(Ownership.ANY),
    (Operation.LIST_PAYMENTS, Role.CUSTOMER): Rule(Ownership.OWNER),
    (Operation.LIST_PAYMENTS, Role.ADMIN): Rule(Ownership.ANY),
}


def _owns(rule: Rule, actor: Actor, order: OrderLike | None) -> bool:
    if rule.ownership is Ownership.ANY:
        return True
    if order is None:
        return False
    if rule.ownership is Ownership.OWNER:
        return order.user_id == actor.user_id
    return actor.owns_shop(order.shop_id)


class AuthorizationPolicy:
    """Stateless: instantiate once, reuse across requests."""

    def __init__(self, table: dict[tuple[Operation, Role], Rule] | None = None) -> None:
        self._table = table if table is not None else POLICY_TABLE

    def rule_for(self, operation: Operation, role: Role) -> Rule | None:
        return self._table.get((operation, role))

    def can_attempt(
        self, operation: Operation, actor: Actor, order: OrderLike | None = None
    ) -> bool:
        """Role + ownership only, ignoring the order's current status."""
        rule = self.rule_for(operation, actor.role)
        return rule is not None and _owns(rule, actor, order)

    def can(self, operation: Operation, actor: Actor, order: OrderLike | None = None) -> bool:
        rule = self.rule_for(operation, actor.role)
        if rule is None or not _owns(rule, actor, order):
            return False
        if rule.states is not None and order is not None:
            return order.status in rule.states
        return True

    def ensure_can_attempt(
        self, operation: Operation, actor: Actor, order: OrderLike | None = None
    ) -> None:
        if not self.can_attempt(operation, actor, order):
            raise UnauthorizedTransitionError(operation.value, order.id if order else "-")

    def authorize(
        self, operation: Operation, actor: Actor, order: OrderLike | None = None
    ) -> None:
        """Raise UnauthorizedTransitionError unless the actor may act on the order now."""
        if not self.can(operation, actor, order):
            raise UnauthorizedTransitionError(operation.value, order.id if order else "-")
