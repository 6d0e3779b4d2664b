"""Тесты клавиатур."""
from tablebot.catalog import get_categories, get_menu
from tablebot.keyboards import (
    bill_keyboard,
    cart_keyboard,
    confirmation_keyboard,
    item_label,
    menu_keyboard,
    otp_keyboard,
    payment_keyboard,
)
from tablebot.models import MenuItem, OrderLineItem


def callbacks(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]


class TestItemLabel:

    def test_veg_with_spice_and_count(self, chai: MenuItem):
        assert item_label(chai, 2) == "🟢 Masala Chai 🌶 — ₹45 [2]"

    def test_nonveg_without_count(self, butter_chicken: MenuItem):
        assert item_label(butter_chicken) == "🔴 Butter Chicken 🌶🌶 — ₹285"

    def test_no_spice(self, kulfi: MenuItem):
        assert item_label(kulfi) == "🟢 Kulfi — ₹85"


class TestMenuKeyboard:

    def test_items_without_cart(self):
        markup = menu_keyboard(get_menu(), ())
        assert callbacks(markup) == [f"menu:{i}" for i in range(1, 7)]

    def test_category_tabs_two_per_row(self):
        markup = menu_keyboard(get_menu(), (), categories=get_categories(), active_category=1)
        rows = markup.inline_keyboard
        assert [b.callback_data for b in rows[0]] == ["cat:0", "cat:1"]
        assert [b.callback_data for b in rows[1]] == ["cat:2", "cat:3"]
        assert rows[0][1].text == "• Main Course"
        assert rows[0][0].text == "Beverages"

    def test_cart_button(self, chai: MenuItem):
        cart = (OrderLineItem(item=chai, quantity=2),)
        markup = menu_keyboard([chai], cart)
        last = markup.inline_keyboard[-1][0]
        assert last.callback_data == "cart:show"
        assert last.text == "🛒 View Order (2) ₹90 →"
        assert markup.inline_keyboard[0][0].text.endswith("[2]")


class TestCartKeyboard:

    def test_rows(self, chai: MenuItem, kulfi: MenuItem):
        cart = (OrderLineItem(item=chai, quantity=2), OrderLineItem(item=kulfi, quantity=1))
        markup = cart_keyboard(cart)
        assert callbacks(markup) == [
            "cart:dec:1", "cart:info:1", "cart:inc:1",
            "cart:dec:6", "cart:info:6", "cart:inc:6",
            "cart:back", "cart:checkout",
        ]
        assert markup.inline_keyboard[0][1].text == "Masala Chai x2"


class TestCheckoutKeyboards:

    def test_payment(self):
        markup = payment_keyboard(443)
        assert callbacks(markup) == ["pay:card", "pay:upi", "pay:wallet", "pay:back"]
        assert markup.inline_keyboard[1][0].text == "Pay ₹443 — UPI"

    def test_otp_with_resend(self):
        assert callbacks(otp_keyboard(can_resend=True)) == ["otp:resend", "otp:close"]

    def test_otp_without_resend(self):
        assert callbacks(otp_keyboard(can_resend=False)) == ["otp:close"]

    def test_confirmation(self):
        assert callbacks(confirmation_keyboard()) == ["bill:show", "order:status", "order:close"]

    def test_bill(self):
        assert callbacks(bill_keyboard()) == ["bill:download", "bill:share", "bill:print", "bill:close"]
