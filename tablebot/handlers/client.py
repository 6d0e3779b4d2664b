import html
import logging

from aiogram import Router, F
from aiogram.filters import CommandStart, Command, CommandObject
from aiogram.types import Message, CallbackQuery, BufferedInputFile
from aiogram.fsm.context import FSMContext

from tablebot import catalog
from tablebot.billing import (
    bill_filename,
    bill_share_text,
    bill_to_json,
    format_bill_text,
    format_money,
    mask_phone,
)
from tablebot.checkout import CheckoutStage
from tablebot.errors import (
    CheckoutValidationError,
    OtpAttemptsExceededError,
    OtpMismatchError,
    PaymentDeclinedError,
    PaymentInProgressError,
    StageError,
)
from tablebot.keyboards import (
    menu_keyboard,
    cart_keyboard,
    payment_keyboard,
    otp_keyboard,
    confirmation_keyboard,
    bill_keyboard,
)
from tablebot.logger import log
from tablebot.models import OrderStatus
from tablebot.otp import format_countdown
from tablebot.payment import PaymentMethod
from tablebot.session import Session, SessionRegistry
from tablebot.states import TableState
from tablebot.store import AddItem, RemoveItem, SetQuantity
from tablebot.utils import (
    get_callback_chat_id,
    get_editable_message,
    get_message_user_id,
    parse_table_id,
    safe_edit_text,
)

logger = logging.getLogger(__name__)

router = Router(name="client")

ORDER_LOCKED_TEXT = "Order already placed. Send /clear to start a new one"


# ===== TEXT =====

def _format_table_header(session: Session, restaurant_name: str) -> str:
    table = session.table
    return (
        f"{restaurant_name} — Table #{session.table_number}\n"
        f"{table.section} Section • Capacity: {table.capacity} guests • "
        f"Your server: {table.server}\n\n"
        "Browse our menu and add items to your order."
    )


def _format_cart_text(session: Session, tax_rate: float) -> str:
    state = session.store.state
    totals = session.checkout.totals()
    text = f"Order Summary — Table #{state.table_number}\n"
    text += f"Order Items ({state.total_quantity} items)\n\n"
    for line in state.items:
        text += f"* {line.name} x{line.quantity} = {format_money(line.line_total)}\n"
    text += f"\nSubtotal: {format_money(totals.subtotal)}"
    text += f"\nGST ({tax_rate * 100:g}%): {format_money(totals.tax)}"
    text += f"\nTotal: {format_money(totals.total)}"
    return text


def _format_otp_text(session: Session) -> str:
    state = session.store.state
    checkout = session.checkout
    totals = checkout.totals()
    challenge = checkout.otp.challenge

    text = "Verify Your Order\n\n"
    text += f"Order #{state.order_id} • Table #{state.table_number}\n"
    text += f"Total Amount: {format_money(totals.total)}\n"
    text += f"Customer: {state.customer_name}\n\n"
    text += f"OTP sent to {mask_phone(state.phone_number)}\n"
    if challenge is not None:
        # SMS не отправляется, код показывается прямо в чате
        text += f"Demo Mode — use OTP: {challenge.code}\n"
    if checkout.otp.can_resend():
        text += "\nDidn't get the code? You can resend it now."
    else:
        text += f"\nResend OTP in {format_countdown(checkout.otp.seconds_left())}"
    text += "\n\nSend the 6-digit code as a message."
    return text


def _format_confirmation_text(session: Session) -> str:
    state = session.store.state
    status = state.order_status
    totals = session.checkout.totals()
    text = f"{status.display_name}\n{status.description}\n\n"
    text += f"Order #{state.order_id} • Table #{state.table_number}\n"
    text += f"Total paid: {format_money(totals.total)} ({state.payment_method})\n"
    if status.estimated_minutes:
        text += f"Estimated time: {status.estimated_minutes} minutes\n"
    return text


# ===== VIEWS =====

async def _show_menu_message(message: Message, session: Session, sessions: SessionRegistry) -> None:
    categories = catalog.get_categories()
    await message.answer(
        _format_table_header(session, sessions.settings.restaurant_name),
        reply_markup=menu_keyboard(
            catalog.get_items_by_category(categories[0]),
            session.store.state.items,
            categories,
            0,
        ),
    )


async def _edit_menu(callback: CallbackQuery, session: Session, sessions: SessionRegistry, category: int) -> None:
    categories = catalog.get_categories()
    await safe_edit_text(
        callback,
        _format_table_header(session, sessions.settings.restaurant_name),
        reply_markup=menu_keyboard(
            catalog.get_items_by_category(categories[category]),
            session.store.state.items,
            categories,
            category,
        ),
    )


async def _edit_cart(callback: CallbackQuery, session: Session, sessions: SessionRegistry) -> None:
    await safe_edit_text(
        callback,
        _format_cart_text(session, sessions.settings.tax_rate),
        reply_markup=cart_keyboard(session.store.state.items),
    )


def _session_for(callback: CallbackQuery, sessions: SessionRegistry) -> Session:
    return sessions.get_or_create(get_callback_chat_id(callback))


def _category_index(data: dict) -> int:
    index = data.get("category", 0)
    return index if 0 <= index < len(catalog.get_categories()) else 0


# ===== START =====

@router.message(CommandStart())
async def cmd_start(
    message: Message,
    state: FSMContext,
    sessions: SessionRegistry,
    command: CommandObject | None = None,
) -> None:
    table_id = parse_table_id(command.args if command else None)
    session = sessions.start(message.chat.id, table_id)

    await state.clear()
    await state.set_state(TableState.browsing_menu)
    await state.update_data(category=0)

    log.user_action(get_message_user_id(message), "START", table=session.table_number)
    await _show_menu_message(message, session, sessions)


@router.message(Command("clear"))
async def cmd_clear(message: Message, state: FSMContext, sessions: SessionRegistry) -> None:
    session = sessions.clear(message.chat.id)

    await state.set_state(TableState.browsing_menu)
    await state.update_data(category=0)

    log.user_action(get_message_user_id(message), "CART_CLEAR", table=session.table_number)
    await message.answer("Order cleared.")
    await _show_menu_message(message, session, sessions)


# ===== MENU =====

@router.callback_query(F.data.startswith("cat:"), TableState.browsing_menu)
async def select_category(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    if not callback.data:
        await callback.answer()
        return

    try:
        index = int(callback.data.split(":")[1])
    except ValueError:
        await callback.answer()
        return

    if not 0 <= index < len(catalog.get_categories()):
        await callback.answer()
        return

    await state.update_data(category=index)
    log.user_action(callback.from_user.id, "MENU_VIEW", category=catalog.get_categories()[index])
    session = _session_for(callback, sessions)
    await _edit_menu(callback, session, sessions, index)
    await callback.answer()


@router.callback_query(F.data.startswith("menu:"), TableState.browsing_menu)
async def add_to_cart(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    if not callback.data:
        await callback.answer()
        return
    msg = get_editable_message(callback)
    if not msg:
        await callback.answer("Message is no longer available")
        return

    item_id = callback.data.split(":", 1)[1]
    item = catalog.get_menu_item(item_id)
    if item is None:
        logger.warning(
            "item_unavailable",
            extra={"user_id": callback.from_user.id, "item_id": item_id}
        )
        await callback.answer("Item unavailable")
        return

    session = _session_for(callback, sessions)
    if session.checkout.cart_locked:
        await callback.answer(ORDER_LOCKED_TEXT)
        return

    cart_state = session.store.dispatch(AddItem(item))
    log.user_action(
        callback.from_user.id,
        "CART_ADD",
        item_id=item.id,
        name=item.name,
        quantity=cart_state.quantity_of(item.id),
    )

    data = await state.get_data()
    categories = catalog.get_categories()
    index = _category_index(data)
    await msg.edit_reply_markup(
        reply_markup=menu_keyboard(
            catalog.get_items_by_category(categories[index]),
            cart_state.items,
            categories,
            index,
        )
    )
    await callback.answer(f"{item.name} added")


# ===== CART =====

@router.callback_query(F.data == "cart:show", TableState.browsing_menu)
async def show_cart(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    if session.store.state.is_empty:
        await callback.answer("Your cart is empty")
        return

    await state.set_state(TableState.viewing_cart)
    log.fsm_transition(callback.from_user.id, "browsing_menu", "viewing_cart", "cart:show")
    await _edit_cart(callback, session, sessions)


@router.callback_query(F.data == "cart:back", TableState.viewing_cart)
async def cart_back_to_menu(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    await state.set_state(TableState.browsing_menu)
    data = await state.get_data()
    session = _session_for(callback, sessions)
    await _edit_menu(callback, session, sessions, _category_index(data))


@router.callback_query(F.data.startswith("cart:info:"), TableState.viewing_cart)
async def cart_item_info(callback: CallbackQuery) -> None:
    if not callback.data:
        await callback.answer()
        return
    item = catalog.get_menu_item(callback.data.split(":", 2)[2])
    await callback.answer(item.description[:200] if item else "")


@router.callback_query(F.data.startswith("cart:inc:"), TableState.viewing_cart)
async def cart_increase(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    if not callback.data:
        await callback.answer()
        return

    item_id = callback.data.split(":", 2)[2]
    session = _session_for(callback, sessions)
    if session.checkout.cart_locked:
        await callback.answer(ORDER_LOCKED_TEXT)
        return

    item = catalog.get_menu_item(item_id)
    if item is None:
        await callback.answer("Item unavailable")
        return

    current = session.store.state.quantity_of(item_id)
    session.store.dispatch(SetQuantity(item_id, current + 1, item=item))
    log.user_action(callback.from_user.id, "CART_INC", item_id=item_id, quantity=current + 1)
    await _edit_cart(callback, session, sessions)


@router.callback_query(F.data.startswith("cart:dec:"), TableState.viewing_cart)
async def cart_decrease(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    if not callback.data:
        await callback.answer()
        return

    item_id = callback.data.split(":", 2)[2]
    session = _session_for(callback, sessions)
    if session.checkout.cart_locked:
        await callback.answer(ORDER_LOCKED_TEXT)
        return

    cart_state = session.store.dispatch(RemoveItem(item_id))
    log.user_action(callback.from_user.id, "CART_DEC", item_id=item_id, quantity=cart_state.quantity_of(item_id))

    if cart_state.is_empty:
        await state.set_state(TableState.browsing_menu)
        data = await state.get_data()
        await _edit_menu(callback, session, sessions, _category_index(data))
        return

    await _edit_cart(callback, session, sessions)


# ===== CUSTOMER DETAILS =====

@router.callback_query(F.data == "cart:checkout", TableState.viewing_cart)
async def checkout(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    order = session.store.state

    if order.is_empty:
        await callback.answer("Your cart is empty")
        return

    # уже оплаченный заказ: продолжаем с того шага, где остановились
    if session.checkout.is_paid:
        await _continue_checkout(
            get_editable_message(callback), state, session, order.customer_name, order.phone_number
        )
        await callback.answer()
        return

    await state.set_state(TableState.entering_name)
    log.fsm_transition(callback.from_user.id, "viewing_cart", "entering_name", "cart:checkout")

    text = "Customer Details\n\nPlease enter your name:"
    if order.customer_name:
        text += f"\n(last time: {html.escape(order.customer_name)})"
    text += "\n\nSend /cancel to go back"
    await safe_edit_text(callback, text)


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext, sessions: SessionRegistry) -> None:
    """Закрывает текущий шаг и возвращает на предыдущий"""
    session = sessions.get_or_create(message.chat.id)
    stage = session.checkout.close()
    current = await state.get_state()

    if stage == CheckoutStage.CONFIRMATION:
        await state.set_state(TableState.confirmed)
        await message.answer(_format_confirmation_text(session), reply_markup=confirmation_keyboard())
        return

    if session.store.state.is_empty or current == TableState.confirmed.state:
        await state.set_state(TableState.browsing_menu)
        await _show_menu_message(message, session, sessions)
        return

    await state.set_state(TableState.viewing_cart)
    log.fsm_transition(get_message_user_id(message), current, "viewing_cart", "/cancel")
    await message.answer(
        _format_cart_text(session, sessions.settings.tax_rate),
        reply_markup=cart_keyboard(session.store.state.items),
    )


@router.message(TableState.entering_name)
async def enter_name(message: Message, state: FSMContext) -> None:
    name = (message.text or "").strip()
    if not name:
        await message.answer("Please enter your name")
        return

    await state.update_data(customer_name=name)
    await state.set_state(TableState.entering_phone)
    await message.answer("Please enter your phone number:")


@router.message(TableState.entering_phone)
async def enter_phone(message: Message, state: FSMContext, sessions: SessionRegistry) -> None:
    phone = (message.text or "").strip()
    data = await state.get_data()
    name = data.get("customer_name", "")
    session = sessions.get_or_create(message.chat.id)

    await _continue_checkout(message, state, session, name, phone)


async def _continue_checkout(
    message: Message | None,
    state: FSMContext,
    session: Session,
    name: str,
    phone: str,
) -> None:
    """Cart -> Payment, либо продолжение уже оплаченного заказа."""
    if message is None:
        return

    try:
        stage = session.checkout.open_payment(name, phone)
    except StageError:
        await message.answer("Please finish the current step or send /cancel")
        return
    except CheckoutValidationError as e:
        log.warning("checkout_validation_failed", field=e.field)
        if e.field == "name":
            await state.set_state(TableState.entering_name)
        elif e.field == "cart":
            await state.set_state(TableState.browsing_menu)
        await message.answer(e.message)
        return

    if stage == CheckoutStage.VERIFICATION:
        await state.set_state(TableState.entering_otp)
        await message.answer(
            _format_otp_text(session),
            reply_markup=otp_keyboard(session.checkout.otp.can_resend()),
        )
        return

    if stage == CheckoutStage.CONFIRMATION:
        await state.set_state(TableState.confirmed)
        await message.answer(_format_confirmation_text(session), reply_markup=confirmation_keyboard())
        return

    await state.set_state(TableState.choosing_payment)
    log.user_action(session.chat_id, "PAYMENT_OPENED", total=session.checkout.totals().total)
    await message.answer(
        "Secure Payment\n\nChoose a payment method:",
        reply_markup=payment_keyboard(session.checkout.totals().total),
    )


# ===== PAYMENT =====

@router.callback_query(F.data == "pay:back", TableState.choosing_payment)
async def payment_back(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    session.checkout.close()
    await state.set_state(TableState.viewing_cart)
    await _edit_cart(callback, session, sessions)


@router.callback_query(F.data.startswith("pay:"), TableState.choosing_payment)
async def pay(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    if not callback.data:
        await callback.answer()
        return

    try:
        method = PaymentMethod(callback.data.split(":", 1)[1])
    except ValueError:
        await callback.answer("Unknown payment method")
        return

    session = _session_for(callback, sessions)
    # повторное нажатие, пока шлюз отвечает на первое
    if session.checkout.is_charging:
        await callback.answer("Payment is already in progress")
        return

    total = session.checkout.totals().total
    await safe_edit_text(callback, f"Processing payment of {format_money(total)}...")

    try:
        challenge = await session.checkout.pay(method)
    except PaymentDeclinedError as e:
        log.user_action(callback.from_user.id, "PAYMENT_DECLINED", method=method.value, reason=e.reason)
        await safe_edit_text(
            callback,
            "Payment declined. Please try again or choose another method.",
            reply_markup=payment_keyboard(total),
        )
        return
    except PaymentInProgressError:
        await callback.answer("Payment is already in progress")
        return
    except StageError as e:
        log.error(callback.from_user.id, "pay", e)
        await callback.answer("This payment screen is closed")
        return

    if challenge is None:
        return

    log.user_action(
        callback.from_user.id,
        "PAYMENT_SUCCESS",
        order_id=session.store.state.order_id,
        method=method.value,
        total=total,
    )
    await state.set_state(TableState.entering_otp)
    await safe_edit_text(
        callback,
        _format_otp_text(session),
        reply_markup=otp_keyboard(session.checkout.otp.can_resend()),
    )


# ===== OTP =====

@router.callback_query(F.data == "otp:resend", TableState.entering_otp)
async def resend_otp(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    checkout = session.checkout
    try:
        # после блокировки по попыткам ждать окончания срока не нужно
        checkout.resend_otp(force=checkout.otp.is_locked)
    except CheckoutValidationError as e:
        await callback.answer(e.message)
        return

    log.user_action(callback.from_user.id, "OTP_RESEND", order_id=session.store.state.order_id)
    await safe_edit_text(
        callback,
        _format_otp_text(session),
        reply_markup=otp_keyboard(checkout.otp.can_resend()),
    )
    await callback.answer("New OTP sent")


@router.callback_query(F.data == "otp:close", TableState.entering_otp)
async def close_otp(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    session.checkout.close()
    await state.set_state(TableState.viewing_cart)
    await _edit_cart(callback, session, sessions)


@router.message(TableState.entering_otp)
async def submit_otp(message: Message, state: FSMContext, sessions: SessionRegistry) -> None:
    code = "".join(ch for ch in (message.text or "") if ch.isdigit())
    session = sessions.get_or_create(message.chat.id)
    user_id = get_message_user_id(message)

    try:
        verified = await session.checkout.verify(code)
    except CheckoutValidationError as e:
        await message.answer(e.message)
        return
    except OtpMismatchError as e:
        log.user_action(user_id, "OTP_FAILED", attempts_left=e.attempts_left)
        text = "Invalid OTP. Please try again."
        if e.attempts_left is not None:
            text += f" Attempts left: {e.attempts_left}"
        await message.answer(text)
        return
    except OtpAttemptsExceededError:
        log.user_action(user_id, "OTP_FAILED", attempts_left=0)
        await message.answer(
            "Too many attempts. Please request a new OTP.",
            reply_markup=otp_keyboard(can_resend=True),
        )
        return

    if not verified:
        return

    bot = message.bot
    chat_id = message.chat.id

    async def notify_status(status: OrderStatus) -> None:
        if bot is None:
            return
        await bot.send_message(
            chat_id,
            _format_confirmation_text(session),
            reply_markup=confirmation_keyboard(),
        )

    session.checkout.on_status_change = notify_status

    log.user_action(user_id, "ORDER_VERIFIED", order_id=session.store.state.order_id)
    await state.set_state(TableState.confirmed)
    await message.answer(_format_confirmation_text(session), reply_markup=confirmation_keyboard())


# ===== CONFIRMATION =====

@router.callback_query(F.data == "order:status", TableState.confirmed)
async def order_status(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    status = session.store.state.order_status
    await callback.answer(f"{status.display_name} {status.description}"[:200])


@router.callback_query(F.data == "order:close", TableState.confirmed)
async def close_confirmation(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    session.checkout.close()
    await state.set_state(TableState.browsing_menu)
    data = await state.get_data()
    await _edit_menu(callback, session, sessions, _category_index(data))


# ===== BILL =====

@router.callback_query(F.data == "bill:show", TableState.confirmed)
async def show_bill(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    try:
        bill = session.checkout.generate_bill()
    except StageError:
        await callback.answer("Bill is not available yet")
        return

    await state.set_state(TableState.viewing_bill)
    log.user_action(callback.from_user.id, "BILL_VIEW", order_id=bill.order_id, total=bill.total)
    await safe_edit_text(
        callback,
        format_bill_text(bill, sessions.settings.tax_rate),
        reply_markup=bill_keyboard(),
    )


@router.callback_query(F.data == "bill:download", TableState.viewing_bill)
async def download_bill(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    msg = get_editable_message(callback)
    if not msg:
        await callback.answer("Message is no longer available")
        return

    session = _session_for(callback, sessions)
    bill = session.checkout.generate_bill()
    document = BufferedInputFile(bill_to_json(bill).encode("utf-8"), filename=bill_filename(bill))

    log.user_action(callback.from_user.id, "BILL_DOWNLOAD", order_id=bill.order_id)
    await msg.answer_document(document)
    await callback.answer()


@router.callback_query(F.data == "bill:share", TableState.viewing_bill)
async def share_bill(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    msg = get_editable_message(callback)
    if not msg:
        await callback.answer("Message is no longer available")
        return

    session = _session_for(callback, sessions)
    bill = session.checkout.generate_bill()
    await msg.answer(bill_share_text(bill))
    await callback.answer("Forward this message to share your bill")


@router.callback_query(F.data == "bill:print", TableState.viewing_bill)
async def print_bill(callback: CallbackQuery, sessions: SessionRegistry) -> None:
    msg = get_editable_message(callback)
    if not msg:
        await callback.answer("Message is no longer available")
        return

    session = _session_for(callback, sessions)
    bill = session.checkout.generate_bill()
    text = format_bill_text(bill, sessions.settings.tax_rate)
    await msg.answer(f"<pre>{html.escape(text)}</pre>", parse_mode="HTML")
    await callback.answer()


@router.callback_query(F.data == "bill:close", TableState.viewing_bill)
async def close_bill(callback: CallbackQuery, state: FSMContext, sessions: SessionRegistry) -> None:
    session = _session_for(callback, sessions)
    session.checkout.close()
    await state.set_state(TableState.confirmed)
    await safe_edit_text(callback, _format_confirmation_text(session), reply_markup=confirmation_keyboard())
