"""Утилиты для обработчиков бота."""
from aiogram.types import CallbackQuery, Message, InaccessibleMessage, InlineKeyboardMarkup


def get_editable_message(callback: CallbackQuery) -> Message | None:
    """Возвращает сообщение если оно доступно для редактирования."""
    if not callback.message:
        return None
    if isinstance(callback.message, InaccessibleMessage):
        return None
    return callback.message


async def safe_edit_text(
    callback: CallbackQuery,
    text: str,
    reply_markup: InlineKeyboardMarkup | None = None,
    parse_mode: str | None = None,
) -> bool:
    """
    Безопасное редактирование сообщения в callback.
    Возвращает True если успешно, False если сообщение недоступно.
    """
    msg = get_editable_message(callback)
    if msg is None:
        await callback.answer(text[:200])
        return False
    await msg.edit_text(text, reply_markup=reply_markup, parse_mode=parse_mode)
    return True


def get_callback_chat_id(callback: CallbackQuery) -> int:
    """chat_id сообщения, а если оно недоступно, id пользователя."""
    if callback.message is not None:
        return callback.message.chat.id
    return callback.from_user.id


def get_message_user_id(message: Message) -> int | None:
    """Безопасное получение user_id из message."""
    return message.from_user.id if message.from_user else None


def parse_table_id(payload: str | None) -> str | None:
    """
    Номер стола из deep link: /start table_12 -> "12".
    QR-код на столе ведёт на t.me/<bot>?start=table_12
    """
    if not payload:
        return None
    payload = payload.strip()
    if payload.startswith("table_"):
        payload = payload[len("table_"):]
    return payload if payload.isalnum() else None
