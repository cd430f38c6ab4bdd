"""Tests for mp_authz.domain.policy: role x ownership x status table."""

import pytest

from src.mp_authz.domain.models import Operation, Ownership, Rule
from src.mp_authz.domain.policy import AuthorizationPolicy
from src.mp_common.enums import OrderStatus, Role
from src.mp_common.errors import UnauthorizedTransitionError
from tests.unit.fakes import (
    ADMIN,
    CUSTOMER,
    OTHER_CUSTOMER,
    OTHER_VENDOR,
    VENDOR,
    make_order,
)

policy = AuthorizationPolicy()


class TestView:
    def test_owner_and_shop_and_admin(self) -> None:
        order = make_order()
        assert policy.can(Operation.VIEW, CUSTOMER, order)
        assert policy.can(Operation.VIEW, VENDOR, order)
        assert policy.can(Operation.VIEW, ADMIN, order)

    def test_strangers(self) -> None:
        order = make_order()
        assert not policy.can(Operation.VIEW, OTHER_CUSTOMER, order)
        assert not policy.can(Operation.VIEW, OTHER_VENDOR, order)


class TestCancel:
    @pytest.mark.parametrize(
        "status,allowed",
        [
            (OrderStatus.PROCESSING, True),
            (OrderStatus.PACKED, False),
            (OrderStatus.SHIPPED, False),
        ],
    )
    def test_customer_only_before_packing(self, status, allowed) -> None:
        assert policy.can(Operation.CANCEL, CUSTOMER, make_order(status=status)) is allowed

    @pytest.mark.parametrize(
        "status", [OrderStatus.PROCESSING, OrderStatus.PACKED, OrderStatus.SHIPPED]
    )
    def test_vendor_until_shipped(self, status) -> None:
        assert policy.can(Operation.CANCEL, VENDOR, make_order(status=status))

    def test_nobody_after_out_for_delivery(self) -> None:
        order = make_order(status=OrderStatus.OUT_FOR_DELIVERY)
        for actor in (CUSTOMER, VENDOR, ADMIN):
            assert not policy.can(Operation.CANCEL, actor, order)

    def test_can_attempt_ignores_status(self) -> None:
        order = make_order(status=OrderStatus.DELIVERED)
        assert policy.can_attempt(Operation.CANCEL, CUSTOMER, order)
        assert not policy.can_attempt(Operation.CANCEL, OTHER_CUSTOMER, order)


class TestAdvanceAndCheckout:
    def test_customer_cannot_advance(self) -> None:
        assert not policy.can(Operation.ADVANCE, CUSTOMER, make_order())

    def test_only_customers_check_out(self) -> None:
        assert policy.can(Operation.CHECKOUT, CUSTOMER)
        assert not policy.can(Operation.CHECKOUT, VENDOR)
        assert not policy.can(Operation.CHECKOUT, ADMIN)

    def test_only_owner_pays(self) -> None:
        order = make_order()
        assert policy.can(Operation.PAY, CUSTOMER, order)
        assert not policy.can(Operation.PAY, ADMIN, order)

    def test_owner_rule_without_order_denies(self) -> None:
        assert not policy.can(Operation.VIEW, CUSTOMER)


class TestAuthorize:
    def test_raises(self) -> None:
        with pytest.raises(UnauthorizedTransitionError) as exc_info:
            policy.authorize(Operation.ADVANCE, CUSTOMER, make_order())
        assert exc_info.value.http_status == 403

    def test_custom_table(self) -> None:
        lenient = AuthorizationPolicy({(Operation.ADVANCE, Role.CUSTOMER): Rule(Ownership.OWNER)})
        lenient.authorize(Operation.ADVANCE, CUSTOMER, make_order())
        assert lenient.rule_for(Operation.VIEW, Role.ADMIN) is None
