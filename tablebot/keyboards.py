from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from tablebot.models import MenuItem, OrderLineItem, SpiceLevel
from tablebot.payment import PaymentMethod


SPICE_MARKERS = {
    SpiceLevel.MILD: "🌶",
    SpiceLevel.MEDIUM: "🌶🌶",
    SpiceLevel.HOT: "🌶🌶🌶",
}


def item_label(item: MenuItem, count: int = 0) -> str:
    """🟢 Masala Chai 🌶 — ₹45 [2]"""
    veg_marker = "🟢" if item.is_veg else "🔴"
    spice = f" {SPICE_MARKERS[item.spice_level]}" if item.spice_level else ""
    count_str = f" [{count}]" if count > 0 else ""
    return f"{veg_marker} {item.name}{spice} — ₹{item.price}{count_str}"


def menu_keyboard(
    items: list[MenuItem],
    cart: tuple[OrderLineItem, ...] | list[OrderLineItem],
    categories: list[str] | None = None,
    active_category: int | None = None,
) -> InlineKeyboardMarkup:
    """Клавиатура меню: вкладки категорий, позиции, кнопка корзины"""
    builder = InlineKeyboardBuilder()

    if categories:
        tabs = []
        for index, category in enumerate(categories):
            marker = "• " if index == active_category else ""
            tabs.append(InlineKeyboardButton(text=f"{marker}{category}", callback_data=f"cat:{index}"))
        # по две вкладки в ряд
        for i in range(0, len(tabs), 2):
            builder.row(*tabs[i:i + 2])

    # кол-во каждой позиции в корзине
    cart_counts = {line.id: line.quantity for line in cart}

    for item in items:
        builder.row(
            InlineKeyboardButton(
                text=item_label(item, cart_counts.get(item.id, 0)),
                callback_data=f"menu:{item.id}",
            )
        )

    if cart:
        total_items = sum(line.quantity for line in cart)
        subtotal = sum(line.line_total for line in cart)
        builder.row(
            InlineKeyboardButton(
                text=f"🛒 View Order ({total_items}) ₹{subtotal} →",
                callback_data="cart:show",
            )
        )

    return builder.as_markup()


def cart_keyboard(cart: tuple[OrderLineItem, ...] | list[OrderLineItem]) -> InlineKeyboardMarkup:
    """Клавиатура корзины"""
    builder = InlineKeyboardBuilder()

    for line in cart:
        builder.row(
            InlineKeyboardButton(text="−", callback_data=f"cart:dec:{line.id}"),
            InlineKeyboardButton(text=f"{line.name} x{line.quantity}", callback_data=f"cart:info:{line.id}"),
            InlineKeyboardButton(text="+", callback_data=f"cart:inc:{line.id}"),
        )

    builder.row(
        InlineKeyboardButton(text="<- Menu", callback_data="cart:back"),
        InlineKeyboardButton(text="Proceed to Payment ->", callback_data="cart:checkout"),
    )

    return builder.as_markup()


def payment_keyboard(total: int) -> InlineKeyboardMarkup:
    """Выбор способа оплаты"""
    builder = InlineKeyboardBuilder()
    for method in PaymentMethod:
        builder.button(
            text=f"Pay ₹{total} — {method.display_name}",
            callback_data=f"pay:{method.value}",
        )
    builder.adjust(1)
    builder.row(InlineKeyboardButton(text="← Back", callback_data="pay:back"))
    return builder.as_markup()


def otp_keyboard(can_resend: bool) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    if can_resend:
        builder.button(text="🔄 Resend OTP", callback_data="otp:resend")
    builder.button(text="✕ Close", callback_data="otp:close")
    builder.adjust(1)
    return builder.as_markup()


def confirmation_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🧾 View Bill", callback_data="bill:show")],
        [InlineKeyboardButton(text="🔄 Refresh Status", callback_data="order:status")],
        [InlineKeyboardButton(text="✕ Close", callback_data="order:close")],
    ])


def bill_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="⬇ Download", callback_data="bill:download"),
            InlineKeyboardButton(text="↗ Share", callback_data="bill:share"),
            InlineKeyboardButton(text="🖨 Print", callback_data="bill:print"),
        ],
        [InlineKeyboardButton(text="✕ Close", callback_data="bill:close")],
    ])
