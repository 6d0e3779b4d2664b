"""Ошибки заказа и оформления.

Все ошибки восстановимые: обработчик показывает сообщение и оставляет
пользователя на предыдущем валидном шаге.
"""


class ConfigurationError(ValueError):
    """Некорректная или неполная конфигурация."""


class OrderError(Exception):
    """Базовая ошибка заказа."""


class CartValidationError(OrderError, ValueError):
    """Некорректное изменение корзины (например, отрицательное количество)."""


class CheckoutValidationError(OrderError):
    """Ошибка ввода на шаге оформления: имя, телефон, код."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class OtpMismatchError(OrderError):
    """Введённый код не совпал с текущим."""

    def __init__(self, attempts_left: int | None = None) -> None:
        super().__init__("Invalid OTP. Please try again.")
        self.attempts_left = attempts_left


class OtpAttemptsExceededError(OrderError):
    """Исчерпаны попытки ввода кода, нужен повторный запрос."""


class PaymentDeclinedError(OrderError):
    def __init__(self, reason: str = "declined") -> None:
        super().__init__(f"Payment declined: {reason}")
        self.reason = reason


class InvalidTransitionError(OrderError):
    """Попытка откатить статус заказа назад."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Нельзя перейти из {current} в {requested}")
        self.current = current
        self.requested = requested


class StageError(OrderError):
    """Операция вызвана не на своём шаге оформления."""

    def __init__(self, current: str, expected: str) -> None:
        super().__init__(f"Шаг {current}, ожидался {expected}")
        self.current = current
        self.expected = expected


class PaymentInProgressError(OrderError):
    """Оплата уже отправлена в шлюз, ответ ещё не пришёл."""
