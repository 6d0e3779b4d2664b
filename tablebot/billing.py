"""
Расчёт итогов и формирование счёта.

Округление налога — половина вверх (ROUND_HALF_UP): 67.5 -> 68.
CGST и SGST считаются как round(tax / 2) каждый, поэтому при нечётном
налоге их сумма на 1 больше tax. Так было всегда и так печатается в счёте.
"""
import json
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from tablebot.models import Bill, BillLine, BillTotals, OrderLineItem, OrderState

TAX_RATE = 0.18
DEFAULT_PAYMENT_METHOD = "Card"


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_totals(items: Iterable[OrderLineItem], tax_rate: float = TAX_RATE) -> BillTotals:
    """subtotal, налог 18% и итог к оплате"""
    subtotal = sum(line.price * line.quantity for line in items)
    # str() чтобы 0.18 не превратилось в 0.179999...
    tax = round_half_up(Decimal(subtotal) * Decimal(str(tax_rate)))
    half = round_half_up(Decimal(tax) / 2)
    return BillTotals(
        subtotal=subtotal,
        tax=tax,
        cgst=half,
        sgst=half,
        total=subtotal + tax,
    )


def format_money(value: int) -> str:
    return f"₹{value}"


def mask_phone(phone: str) -> str:
    """Видны только последние 3 цифры: +91 ****-***-210"""
    tail = phone[-3:] if phone else "XXX"
    return f"+91 ****-***-{tail}"


def build_bill(
    state: OrderState,
    now: datetime | None = None,
    tax_rate: float = TAX_RATE,
    restaurant_name: str = "GetMeChai",
) -> Bill:
    """Снимок счёта по текущему состоянию. Состояние не меняется."""
    totals = calculate_totals(state.items, tax_rate)
    order_id = state.order_id or ""
    return Bill(
        bill_number=f"BILL-{order_id}",
        order_id=order_id,
        issued_at=now or datetime.now(),
        restaurant_name=restaurant_name,
        customer_name=state.customer_name,
        phone_masked=mask_phone(state.phone_number),
        table_number=state.table_number,
        lines=[
            BillLine(
                name=line.name,
                unit_price=line.price,
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in state.items
        ],
        subtotal=totals.subtotal,
        tax=totals.tax,
        cgst=totals.cgst,
        sgst=totals.sgst,
        total=totals.total,
        payment_method=state.payment_method or DEFAULT_PAYMENT_METHOD,
    )


# ===== EXPORT =====

def bill_filename(bill: Bill) -> str:
    return f"{bill.restaurant_name}_Bill_{bill.order_id}.json"


def bill_to_json(bill: Bill) -> str:
    """JSON для скачивания счёта файлом"""
    data = {
        "billNumber": bill.bill_number,
        "orderId": bill.order_id,
        "date": bill.issued_at.isoformat(),
        "customer": bill.customer_name,
        "table": bill.table_number,
        "items": [line.model_dump() for line in bill.lines],
        "subtotal": bill.subtotal,
        "tax": bill.tax,
        "total": bill.total,
        "paymentMethod": bill.payment_method,
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


def bill_share_text(bill: Bill) -> str:
    return (
        f"{bill.restaurant_name} Bill - Order #{bill.order_id}\n"
        f"Total: {format_money(bill.total)}\n"
        f"Table: #{bill.table_number}"
    )


def format_bill_text(bill: Bill, tax_rate: float = TAX_RATE) -> str:
    """Текст счёта для показа и печати"""
    half_percent = f"{tax_rate * 100 / 2:g}"
    text = f"{bill.restaurant_name}\n"
    text += "Smart Restaurant Ordering System\n\n"
    text += f"Bill No: {bill.bill_number}\n"
    text += f"Order ID: #{bill.order_id}\n"
    text += f"Date: {bill.issued_at.strftime('%d/%m/%Y %H:%M:%S')}\n"
    text += f"Table: #{bill.table_number}\n\n"
    text += f"Name: {bill.customer_name}\n"
    text += f"Phone: {bill.phone_masked}\n"
    text += f"Payment: {bill.payment_method}\n\n"

    for line in bill.lines:
        text += (
            f"* {line.name} x{line.quantity} @ {format_money(line.unit_price)}"
            f" = {format_money(line.line_total)}\n"
        )

    text += f"\nSubtotal: {format_money(bill.subtotal)}\n"
    text += f"CGST ({half_percent}%): {format_money(bill.cgst)}\n"
    text += f"SGST ({half_percent}%): {format_money(bill.sgst)}\n"
    text += f"Total: {format_money(bill.total)}\n\n"
    text += "Thank you for dining with us!"
    return text
