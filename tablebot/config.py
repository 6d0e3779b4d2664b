from pathlib import Path
from pydantic_settings import BaseSettings

from tablebot.errors import ConfigurationError


class Settings(BaseSettings):
    bot_token: str = ""
    log_level: str = "INFO"
    log_format: str = "json"  # "json" | "text"
    log_to_file: bool = False  # logs/guests.log и logs/errors.log

    restaurant_name: str = "GetMeChai"
    default_table: str = "12"
    tax_rate: float = 0.18  # GST 18%: CGST 9% + SGST 9%

    # симуляция внешних интеграций, секунды
    payment_delay: float = 3.0
    payment_decline_rate: float = 0.0  # 0.0..1.0, доля отказов шлюза
    otp_verify_delay: float = 2.0
    otp_ttl_seconds: int = 300
    otp_max_attempts: int = 5  # 0 = без ограничения
    ready_delay: float = 15.0

    class Config:
        env_file = Path(__file__).parent.parent / ".env"

    def check_required(self) -> None:
        """Проверка обязательных переменных при старте"""
        if not self.bot_token:
            raise ConfigurationError("BOT_TOKEN не задан в .env")
        if not 0.0 <= self.payment_decline_rate <= 1.0:
            raise ConfigurationError("PAYMENT_DECLINE_RATE должен быть в диапазоне 0..1")
        if self.otp_max_attempts < 0:
            raise ConfigurationError("OTP_MAX_ATTEMPTS не может быть отрицательным")


settings = Settings()
