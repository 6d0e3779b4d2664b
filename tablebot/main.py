import asyncio
import json
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from tablebot.config import settings
from tablebot.handlers import client_router
from tablebot.session import SessionRegistry

logger = logging.getLogger(__name__)

# атрибуты LogRecord, которые не относятся к extra={...}
_RECORD_FIELDS = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Одна запись на строку; поля из extra становятся ключами JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_FIELDS:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging() -> None:
    """JSON для прода, текст для локальной отладки."""
    if settings.log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)-7s %(name)s | %(message)s", datefmt="%H:%M:%S")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    logging.getLogger("aiogram").setLevel(logging.WARNING)


def create_dispatcher(sessions: SessionRegistry) -> Dispatcher:
    dp = Dispatcher(storage=MemoryStorage())
    # реестр сессий попадает в обработчики параметром sessions
    dp["sessions"] = sessions
    dp.include_router(client_router)
    return dp


async def main() -> None:
    settings.check_required()
    setup_logging()

    sessions = SessionRegistry(settings)
    bot = Bot(token=settings.bot_token)
    dp = create_dispatcher(sessions)

    logger.info(
        "bot_started",
        extra={"restaurant": settings.restaurant_name, "default_table": settings.default_table},
    )
    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        # таймеры кухни не должны пережить бота
        sessions.close_all()
        await bot.session.close()
        logger.info("bot_stopped", extra={"sessions": len(sessions)})


if __name__ == "__main__":
    asyncio.run(main())
