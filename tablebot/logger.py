"""
Журнал действий гостей.

Отдельный логгер "getmechai.guests" пишет человекочитаемые строки:

    [2025-03-14 19:30:05] [INFO] [GUEST:123] [CART_ADD] Добавлено в корзину {item_id='1', quantity=2}

Технические события модулей идут через logging.getLogger(__name__) и
настраиваются в main.setup_logging().
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from tablebot.config import settings

LOG_DIR = Path(__file__).parent.parent / "logs"

ACTION_MESSAGES = {
    "START": "Гость открыл меню стола",
    "MENU_VIEW": "Просмотр категории меню",
    "CART_ADD": "Добавлено в корзину",
    "CART_INC": "Увеличено количество",
    "CART_DEC": "Уменьшено количество",
    "CART_CLEAR": "Заказ очищен",
    "PAYMENT_OPENED": "Открыта оплата",
    "PAYMENT_SUCCESS": "Оплата прошла",
    "PAYMENT_DECLINED": "Оплата отклонена",
    "OTP_RESEND": "Код отправлен повторно",
    "OTP_FAILED": "Неверный код",
    "ORDER_VERIFIED": "Заказ подтверждён кодом",
    "BILL_VIEW": "Просмотр счёта",
    "BILL_DOWNLOAD": "Счёт скачан",
}


class GuestFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        parts = [f"[{created}]", f"[{record.levelname}]"]

        guest = getattr(record, "guest_id", None)
        if guest is not None:
            parts.append(f"[GUEST:{guest}]")
        action = getattr(record, "action", None)
        if action:
            parts.append(f"[{action}]")

        parts.append(record.getMessage())

        context = getattr(record, "context", None)
        if context:
            parts.append("{" + ", ".join(f"{key}={value!r}" for key, value in context.items()) + "}")
        return " ".join(parts)


def _build_logger() -> logging.Logger:
    logger = logging.getLogger("getmechai.guests")
    logger.propagate = False
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter = GuestFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(LOG_DIR / "guests.log", encoding="utf-8"))
        errors = logging.FileHandler(LOG_DIR / "errors.log", encoding="utf-8")
        errors.setLevel(logging.ERROR)
        handlers.append(errors)

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


class GuestLog:
    """
    Использование:
        from tablebot.logger import log
        log.user_action(123, "CART_ADD", item_id="1", quantity=2)
        log.fsm_transition(123, "viewing_cart", "entering_name", "cart:checkout")
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _build_logger()

    def _emit(self, level: int, message: str, guest_id: int | None, action: str | None, context: dict) -> None:
        self._logger.log(
            level,
            message,
            extra={"guest_id": guest_id, "action": action, "context": context or None},
        )

    def user_action(self, user_id: int | None, action: str, **context: Any) -> None:
        self._emit(logging.INFO, ACTION_MESSAGES.get(action, action), user_id, action, context)

    def fsm_transition(self, user_id: int | None, from_state: str | None, to_state: str | None, trigger: str) -> None:
        message = f"{from_state or '-'} → {to_state or '-'} ({trigger})"
        self._emit(logging.DEBUG, message, user_id, "FSM", {})

    def error(self, user_id: int | None, action: str, error: Exception, **context: Any) -> None:
        self._emit(logging.ERROR, f"{type(error).__name__}: {error}", user_id, action, context)

    def warning(self, message: str, user_id: int | None = None, **context: Any) -> None:
        self._emit(logging.WARNING, message, user_id, None, context)


log = GuestLog()
