"""Тесты реестра сессий."""
import pytest

from tablebot.checkout import CheckoutStage
from tablebot.models import MenuItem, OrderStatus
from tablebot.payment import PaymentMethod
from tablebot.session import SessionRegistry
from tablebot.store import AddItem


class TestSessionRegistry:

    def test_get_or_create_uses_default_table(self, sessions: SessionRegistry):
        session = sessions.get_or_create(100)
        assert session.table_number == "12"
        assert session.table.section == "VIP"
        assert 100 in sessions
        assert len(sessions) == 1

    def test_get_or_create_returns_same(self, sessions: SessionRegistry):
        first = sessions.get_or_create(100)
        assert sessions.get_or_create(100, table_id="5") is first

    def test_start_with_table(self, sessions: SessionRegistry):
        session = sessions.start(100, table_id="5")
        assert session.table_number == "5"
        assert session.table.section == "Indoor"
        assert session.store.state.customer_name == ""

    def test_unknown_table_keeps_number(self, sessions: SessionRegistry):
        session = sessions.start(100, table_id="77")
        assert session.table_number == "77"
        assert session.table.server == "Staff"

    def test_start_replaces_session(self, sessions: SessionRegistry, chai: MenuItem):
        old = sessions.start(100)
        old.store.dispatch(AddItem(chai))
        new = sessions.start(100, table_id="3")
        assert new is not old
        assert new.store.state.is_empty
        assert old.checkout.scope.closed
        assert sessions.get(100) is new

    def test_sessions_are_isolated(self, sessions: SessionRegistry, chai: MenuItem):
        a = sessions.start(1)
        b = sessions.start(2)
        a.store.dispatch(AddItem(chai))
        assert b.store.state.is_empty

    def test_close(self, sessions: SessionRegistry):
        session = sessions.start(100)
        sessions.close(100)
        assert 100 not in sessions
        assert session.checkout.scope.closed
        sessions.close(100)

    def test_close_all(self, sessions: SessionRegistry):
        sessions.start(1)
        sessions.start(2)
        sessions.close_all()
        assert len(sessions) == 0


class TestClear:

    def test_clear_keeps_table(self, sessions: SessionRegistry, chai: MenuItem):
        session = sessions.start(100, table_id="5")
        session.store.dispatch(AddItem(chai))
        cleared = sessions.clear(100)
        assert cleared is session
        assert cleared.table_number == "5"
        assert cleared.store.state.is_empty

    def test_clear_without_session_starts_one(self, sessions: SessionRegistry):
        session = sessions.clear(100)
        assert session.table_number == "12"

    @pytest.mark.asyncio
    async def test_clear_after_payment(self, sessions: SessionRegistry, chai: MenuItem):
        session = sessions.start(100)
        session.store.dispatch(AddItem(chai))
        old_checkout = session.checkout
        old_checkout.open_payment("Asha", "9876543210")
        await old_checkout.pay(PaymentMethod.CARD)

        sessions.clear(100)

        state = session.store.state
        assert state.order_id is None
        assert state.order_status == OrderStatus.CART
        assert old_checkout.scope.closed
        assert session.checkout is not old_checkout
        assert session.checkout.stage == CheckoutStage.CART
        assert not session.checkout.cart_locked
