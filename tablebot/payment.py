"""Симуляция платёжного шлюза: задержка, затем успех или отказ."""
import asyncio
import logging
import random
import uuid
from dataclasses import dataclass
from enum import Enum

from tablebot.errors import PaymentDeclinedError

logger = logging.getLogger(__name__)


class PaymentMethod(str, Enum):
    CARD = "card"
    UPI = "upi"
    WALLET = "wallet"

    @property
    def display_name(self) -> str:
        names = {
            "card": "Card",
            "upi": "UPI",
            "wallet": "Wallet",
        }
        return names[self.value]


@dataclass(frozen=True)
class PaymentReceipt:
    payment_id: str
    method: PaymentMethod
    amount: int


def new_payment_id() -> str:
    return f"pay_{uuid.uuid4().hex[:12]}"


class PaymentGateway:
    def __init__(
        self,
        delay: float = 3.0,
        decline_rate: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self.delay = delay
        self.decline_rate = decline_rate
        self._rng = rng or random.Random()

    async def charge(self, method: PaymentMethod, amount: int) -> PaymentReceipt:
        """
        Списывает сумму. Отменяется вместе с задачей, которая его ждёт.
        Raises: PaymentDeclinedError
        """
        if amount <= 0:
            raise PaymentDeclinedError("empty amount")

        await asyncio.sleep(self.delay)

        if self.decline_rate and self._rng.random() < self.decline_rate:
            logger.warning(
                "payment_declined",
                extra={"method": method.value, "amount": amount}
            )
            raise PaymentDeclinedError("declined by bank")

        receipt = PaymentReceipt(payment_id=new_payment_id(), method=method, amount=amount)
        logger.info(
            "payment_captured",
            extra={"payment_id": receipt.payment_id, "method": method.value, "amount": amount}
        )
        return receipt
