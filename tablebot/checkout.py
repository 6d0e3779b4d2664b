"""
Последовательность оформления заказа.

    Корзина -> Оплата -> Код подтверждения -> Подтверждение -> Счёт

Каждый шаг открывается только после успеха предыдущего. Закрытие шага
возвращает на шаг, который его открыл, без отката состояния.
"""
import asyncio
import logging
import random
import uuid
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from tablebot.billing import build_bill, calculate_totals
from tablebot.config import Settings
from tablebot.errors import (
    CheckoutValidationError,
    OtpAttemptsExceededError,
    OtpMismatchError,
    PaymentInProgressError,
    StageError,
)
from tablebot.models import Bill, BillTotals, OrderStatus
from tablebot.otp import OtpChallenge, OtpIssuer, format_countdown, is_well_formed
from tablebot.payment import PaymentGateway, PaymentMethod
from tablebot.store import (
    OrderStore,
    SetCustomerDetails,
    SetOrderId,
    SetOrderStatus,
    SetOtp,
    SetPaymentDetails,
)
from tablebot.timers import TaskScope

logger = logging.getLogger(__name__)

MIN_PHONE_LENGTH = 10

StatusCallback = Callable[[OrderStatus], Awaitable[None]]


class CheckoutStage(str, Enum):
    CART = "cart"
    PAYMENT = "payment"
    VERIFICATION = "verification"
    CONFIRMATION = "confirmation"
    BILL = "bill"


# куда возвращает закрытие шага
PARENT_STAGE = {
    CheckoutStage.PAYMENT: CheckoutStage.CART,
    CheckoutStage.VERIFICATION: CheckoutStage.CART,
    CheckoutStage.CONFIRMATION: CheckoutStage.CART,
    CheckoutStage.BILL: CheckoutStage.CONFIRMATION,
}


def new_order_id() -> str:
    """GMC + 8 hex-символов из uuid4"""
    return f"GMC{uuid.uuid4().hex[:8].upper()}"


def validate_customer(name: str, phone: str) -> None:
    if not name.strip():
        raise CheckoutValidationError("name", "Please enter your name")
    if not phone.strip() or len(phone) < MIN_PHONE_LENGTH:
        raise CheckoutValidationError("phone", "Please enter a valid phone number")


class CheckoutSequencer:
    def __init__(
        self,
        store: OrderStore,
        settings: Settings,
        scope: TaskScope | None = None,
        gateway: PaymentGateway | None = None,
        otp: OtpIssuer | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.scope = scope or TaskScope()
        self.gateway = gateway or PaymentGateway(
            delay=settings.payment_delay,
            decline_rate=settings.payment_decline_rate,
            rng=rng,
        )
        self.otp = otp or OtpIssuer(
            ttl_seconds=settings.otp_ttl_seconds,
            max_attempts=settings.otp_max_attempts,
            rng=rng,
        )
        self.on_status_change: StatusCallback | None = None
        self._stage = CheckoutStage.CART
        self._disposed = False
        # каждое открытие оплаты начинает новый раунд; ответ шлюза из старого раунда не применяется
        self._payment_round = 0
        self._charging_round: int | None = None

    @property
    def stage(self) -> CheckoutStage:
        return self._stage

    @property
    def is_paid(self) -> bool:
        return self.store.state.order_id is not None

    @property
    def is_charging(self) -> bool:
        """В текущем раунде оплаты ждём ответ шлюза"""
        return self._charging_round is not None and self._charging_round == self._payment_round

    @property
    def cart_locked(self) -> bool:
        """После оплаты состав заказа не меняется"""
        return self.is_paid

    def totals(self) -> BillTotals:
        return calculate_totals(self.store.state.items, self.settings.tax_rate)

    def _require(self, *stages: CheckoutStage) -> None:
        if self._disposed:
            raise StageError("disposed", "/".join(s.value for s in stages))
        if self._stage not in stages:
            raise StageError(self._stage.value, "/".join(s.value for s in stages))

    def _move(self, stage: CheckoutStage, trigger: str) -> None:
        logger.debug(
            "checkout_transition",
            extra={
                "from_stage": self._stage.value,
                "to_stage": stage.value,
                "trigger": trigger,
                "order_id": self.store.state.order_id,
            }
        )
        self._stage = stage

    # ===== CART -> PAYMENT =====

    def open_payment(self, name: str, phone: str) -> CheckoutStage:
        """
        Проверяет имя и телефон и открывает оплату.
        Уже оплаченный заказ повторно не оплачивается: открывается тот шаг,
        на котором оформление остановилось.
        """
        self._require(CheckoutStage.CART)
        validate_customer(name, phone)
        state = self.store.state
        if state.is_empty:
            raise CheckoutValidationError("cart", "Your cart is empty")

        self.store.dispatch(SetCustomerDetails(
            name=name.strip(),
            table_number=state.table_number,
            phone_number=phone.strip(),
        ))

        if self.is_paid:
            resumed = (
                CheckoutStage.VERIFICATION
                if self.store.state.order_status == OrderStatus.CONFIRMED
                else CheckoutStage.CONFIRMATION
            )
            self._move(resumed, "resume")
            return resumed

        self.store.dispatch(SetOrderStatus(OrderStatus.PAYMENT))
        self._payment_round += 1
        self._move(CheckoutStage.PAYMENT, "proceed_to_payment")
        return self._stage

    # ===== PAYMENT -> VERIFICATION =====

    async def pay(self, method: PaymentMethod, now: datetime | None = None) -> OtpChallenge | None:
        """
        Оплата через симулированный шлюз.
        При отказе остаёмся на шаге оплаты (можно повторить).
        Returns: выданный код или None, если результат устарел
        Raises: PaymentDeclinedError, PaymentInProgressError
        """
        self._require(CheckoutStage.PAYMENT)
        if self.is_charging:
            raise PaymentInProgressError("Payment is already being processed")

        payment_round = self._payment_round
        amount = self.totals().total
        self._charging_round = payment_round
        try:
            receipt = await self.gateway.charge(method, amount)
        finally:
            if self._charging_round == payment_round:
                self._charging_round = None

        # пока ждали шлюз, сессию могли закрыть или открыть оплату заново
        if self._disposed or self._stage != CheckoutStage.PAYMENT or payment_round != self._payment_round:
            logger.warning(
                "payment_result_discarded",
                extra={"payment_id": receipt.payment_id, "stage": self._stage.value}
            )
            return None

        self.store.dispatch(SetPaymentDetails(method=method.display_name, payment_id=receipt.payment_id))
        self.store.dispatch(SetOrderId(new_order_id()))
        self.store.dispatch(SetOrderStatus(OrderStatus.CONFIRMED))

        logger.info(
            "order_paid",
            extra={
                "order_id": self.store.state.order_id,
                "payment_id": receipt.payment_id,
                "method": method.value,
                "total": amount,
            }
        )

        challenge = self._issue_otp(now)
        self._move(CheckoutStage.VERIFICATION, "payment_success")
        return challenge

    # ===== VERIFICATION -> CONFIRMATION =====

    def _issue_otp(self, now: datetime | None = None) -> OtpChallenge:
        challenge = self.otp.issue(now)
        self.store.dispatch(SetOtp(challenge.code))
        # в реальности код ушёл бы по SMS
        logger.info("otp_sent", extra={"order_id": self.store.state.order_id})
        return challenge

    def resend_otp(self, now: datetime | None = None, force: bool = False) -> OtpChallenge:
        """Новый код доступен только после окончания срока действия текущего."""
        self._require(CheckoutStage.VERIFICATION)
        if not force and not self.otp.can_resend(now):
            raise CheckoutValidationError(
                "otp",
                f"Resend OTP in {format_countdown(self.otp.seconds_left(now))}",
            )
        return self._issue_otp(now)

    async def verify(self, code: str) -> bool:
        """
        Проверка кода.
        Returns: True при успехе, False если результат устарел
        Raises: CheckoutValidationError, OtpMismatchError, OtpAttemptsExceededError
        """
        self._require(CheckoutStage.VERIFICATION)
        code = code.strip()
        if not is_well_formed(code):
            raise CheckoutValidationError("otp", "Please enter all 6 digits")
        if self.otp.is_locked:
            raise OtpAttemptsExceededError("Too many attempts. Please request a new OTP.")

        await asyncio.sleep(self.settings.otp_verify_delay)

        if self._disposed or self._stage != CheckoutStage.VERIFICATION:
            return False

        if not self.otp.matches(code):
            logger.warning(
                "otp_mismatch",
                extra={
                    "order_id": self.store.state.order_id,
                    "failed_attempts": self.otp.failed_attempts,
                }
            )
            if self.otp.is_locked:
                raise OtpAttemptsExceededError("Too many attempts. Please request a new OTP.")
            raise OtpMismatchError(self.otp.attempts_left)

        self.store.dispatch(SetOrderStatus(OrderStatus.PREPARING))
        self._move(CheckoutStage.CONFIRMATION, "otp_verified")
        self.scope.schedule(self.settings.ready_delay, self._mark_ready, label="ready")

        logger.info("order_verified", extra={"order_id": self.store.state.order_id})
        return True

    async def _mark_ready(self) -> None:
        """Кухня «приготовила» заказ, статус идёт дальше сам."""
        if self._disposed or self.store.state.order_status != OrderStatus.PREPARING:
            return
        self.store.dispatch(SetOrderStatus(OrderStatus.READY))
        logger.info("order_ready", extra={"order_id": self.store.state.order_id})
        if self.on_status_change is not None:
            await self.on_status_change(OrderStatus.READY)

    # ===== CONFIRMATION -> BILL =====

    def generate_bill(self, now: datetime | None = None) -> Bill:
        """Только чтение: состояние заказа не меняется."""
        self._require(CheckoutStage.CONFIRMATION, CheckoutStage.BILL)
        bill = build_bill(
            self.store.state,
            now=now,
            tax_rate=self.settings.tax_rate,
            restaurant_name=self.settings.restaurant_name,
        )
        if self._stage != CheckoutStage.BILL:
            self._move(CheckoutStage.BILL, "generate_bill")
        return bill

    # ===== CLOSE / DISPOSE =====

    def close(self) -> CheckoutStage:
        """Закрывает текущий шаг и возвращает на открывший его."""
        if self._stage == CheckoutStage.CART:
            return self._stage
        self._move(PARENT_STAGE[self._stage], "close")
        return self._stage

    def dispose(self) -> None:
        """Отменяет отложенные задачи; дальнейшие вызовы шагов запрещены."""
        self._disposed = True
        self.scope.close()
