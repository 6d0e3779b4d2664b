"""Одноразовый код подтверждения заказа (симуляция SMS)."""
import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
OTP_TTL_SECONDS = 300  # 5 минут


def generate_code(rng: random.Random | None = None) -> str:
    """6 независимых цифр, ведущие нули допустимы"""
    rng = rng or random.SystemRandom()
    return "".join(str(rng.randrange(10)) for _ in range(OTP_LENGTH))


def is_well_formed(code: str) -> bool:
    return len(code) == OTP_LENGTH and code.isdigit()


def format_countdown(seconds: int) -> str:
    """300 -> '5:00'"""
    seconds = max(seconds, 0)
    return f"{seconds // 60}:{seconds % 60:02d}"


@dataclass(frozen=True)
class OtpChallenge:
    code: str
    issued_at: datetime
    expires_at: datetime


class OtpIssuer:
    """
    Выдаёт и проверяет код. Действует только последний выданный код.

    Срок жизни носит рекомендательный характер: по его истечении
    становится доступен повторный запрос, но сам код не аннулируется.
    """

    def __init__(
        self,
        ttl_seconds: int = OTP_TTL_SECONDS,
        max_attempts: int = 0,
        rng: random.Random | None = None,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self._rng = rng
        self._challenge: OtpChallenge | None = None
        self._failed_attempts = 0

    @property
    def challenge(self) -> OtpChallenge | None:
        return self._challenge

    @property
    def failed_attempts(self) -> int:
        return self._failed_attempts

    @property
    def attempts_left(self) -> int | None:
        if not self.max_attempts:
            return None
        return max(self.max_attempts - self._failed_attempts, 0)

    @property
    def is_locked(self) -> bool:
        return bool(self.max_attempts) and self._failed_attempts >= self.max_attempts

    def issue(self, now: datetime | None = None) -> OtpChallenge:
        """Новый код. Предыдущий перестаёт действовать."""
        now = now or datetime.now()
        self._challenge = OtpChallenge(
            code=generate_code(self._rng),
            issued_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        self._failed_attempts = 0
        logger.debug("otp_issued", extra={"expires_at": self._challenge.expires_at.isoformat()})
        return self._challenge

    def matches(self, code: str) -> bool:
        """Сравнивает с текущим кодом и считает неудачные попытки."""
        if self._challenge is None:
            return False
        if code == self._challenge.code:
            return True
        self._failed_attempts += 1
        return False

    def seconds_left(self, now: datetime | None = None) -> int:
        if self._challenge is None:
            return 0
        now = now or datetime.now()
        delta = (self._challenge.expires_at - now).total_seconds()
        return max(math.ceil(delta), 0)

    def can_resend(self, now: datetime | None = None) -> bool:
        return self._challenge is None or self.seconds_left(now) == 0
