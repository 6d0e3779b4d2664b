"""Тесты расчёта итогов и экспорта счёта."""
import json
from datetime import datetime
from decimal import Decimal

import pytest

from tablebot.billing import (
    bill_filename,
    bill_share_text,
    bill_to_json,
    build_bill,
    calculate_totals,
    format_bill_text,
    format_money,
    mask_phone,
    round_half_up,
)
from tablebot.models import MenuItem, OrderLineItem
from tablebot.store import OrderStore, SetCustomerDetails, SetOrderId, SetPaymentDetails


ISSUED_AT = datetime(2025, 3, 14, 19, 30, 5)


@pytest.fixture
def paid_store(filled_store: OrderStore) -> OrderStore:
    filled_store.dispatch(SetCustomerDetails(name="Asha", table_number="12", phone_number="9876543210"))
    filled_store.dispatch(SetPaymentDetails(method="UPI", payment_id="pay_123"))
    filled_store.dispatch(SetOrderId("GMC1A2B3C4D"))
    return filled_store


class TestTotals:

    def test_reference_order(self, filled_store: OrderStore):
        """Masala Chai x2 + Butter Chicken x1: 375, налог 67.5 -> 68, итог 443."""
        totals = calculate_totals(filled_store.state.items)
        assert totals.subtotal == 375
        assert totals.tax == 68
        assert totals.total == 443

    def test_total_is_subtotal_plus_tax(self, chai: MenuItem, kulfi: MenuItem):
        items = [OrderLineItem(item=chai, quantity=3), OrderLineItem(item=kulfi, quantity=2)]
        totals = calculate_totals(items)
        assert totals.subtotal == 305
        assert totals.tax == 55  # 54.9
        assert totals.total == totals.subtotal + totals.tax

    def test_empty_cart(self):
        totals = calculate_totals([])
        assert (totals.subtotal, totals.tax, totals.total) == (0, 0, 0)

    def test_even_tax_split(self, filled_store: OrderStore):
        """68 -> 34 + 34"""
        even = calculate_totals(filled_store.state.items)
        assert even.cgst == even.sgst == 34

    def test_odd_tax_split(self):
        """9 -> 5 + 5: сумма половин на 1 больше налога."""
        item = MenuItem(id="z", name="Thali", price=50, category="Main Course", is_veg=True)
        totals = calculate_totals([OrderLineItem(item=item, quantity=1)])
        assert totals.tax == 9
        assert totals.cgst == 5
        assert totals.sgst == 5
        assert totals.cgst + totals.sgst == totals.tax + 1

    def test_custom_rate(self, filled_store: OrderStore):
        totals = calculate_totals(filled_store.state.items, tax_rate=0.05)
        assert totals.tax == 19  # 18.75
        assert totals.total == 394

    def test_round_half_up(self):
        assert round_half_up(Decimal("67.5")) == 68
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.49")) == 2


class TestFormatting:

    def test_format_money(self):
        assert format_money(443) == "₹443"

    def test_mask_phone(self):
        assert mask_phone("9876543210") == "+91 ****-***-210"

    def test_mask_empty_phone(self):
        assert mask_phone("") == "+91 ****-***-XXX"


class TestBill:

    def test_build_bill(self, paid_store: OrderStore):
        bill = build_bill(paid_store.state, now=ISSUED_AT)
        assert bill.bill_number == "BILL-GMC1A2B3C4D"
        assert bill.order_id == "GMC1A2B3C4D"
        assert bill.customer_name == "Asha"
        assert bill.phone_masked == "+91 ****-***-210"
        assert bill.table_number == "12"
        assert bill.payment_method == "UPI"
        assert [line.name for line in bill.lines] == ["Masala Chai", "Butter Chicken"]
        assert bill.lines[0].line_total == 90
        assert (bill.subtotal, bill.tax, bill.total) == (375, 68, 443)

    def test_build_bill_does_not_change_state(self, paid_store: OrderStore):
        before = paid_store.state
        build_bill(before, now=ISSUED_AT)
        assert paid_store.state == before

    def test_default_payment_method(self, filled_store: OrderStore):
        bill = build_bill(filled_store.state, now=ISSUED_AT)
        assert bill.payment_method == "Card"

    def test_filename(self, paid_store: OrderStore):
        bill = build_bill(paid_store.state, now=ISSUED_AT)
        assert bill_filename(bill) == "GetMeChai_Bill_GMC1A2B3C4D.json"

    def test_json_export(self, paid_store: OrderStore):
        bill = build_bill(paid_store.state, now=ISSUED_AT)
        data = json.loads(bill_to_json(bill))
        assert data["billNumber"] == "BILL-GMC1A2B3C4D"
        assert data["orderId"] == "GMC1A2B3C4D"
        assert data["date"] == "2025-03-14T19:30:05"
        assert data["customer"] == "Asha"
        assert data["table"] == "12"
        assert data["subtotal"] == 375
        assert data["tax"] == 68
        assert data["total"] == 443
        assert data["paymentMethod"] == "UPI"
        assert data["items"][1] == {
            "name": "Butter Chicken",
            "unit_price": 285,
            "quantity": 1,
            "line_total": 285,
        }

    def test_share_text(self, paid_store: OrderStore):
        bill = build_bill(paid_store.state, now=ISSUED_AT)
        assert bill_share_text(bill) == (
            "GetMeChai Bill - Order #GMC1A2B3C4D\n"
            "Total: ₹443\n"
            "Table: #12"
        )

    def test_bill_text(self, paid_store: OrderStore):
        bill = build_bill(paid_store.state, now=ISSUED_AT)
        text = format_bill_text(bill)
        assert "Bill No: BILL-GMC1A2B3C4D" in text
        assert "Date: 14/03/2025 19:30:05" in text
        assert "* Masala Chai x2 @ ₹45 = ₹90" in text
        assert "CGST (9%): ₹34" in text
        assert "SGST (9%): ₹34" in text
        assert "Total: ₹443" in text
