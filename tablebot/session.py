"""
Сессии заказа: одна на чат.

Сессия владеет хранилищем, последовательностью оформления и отложенными
задачами. Обработчики получают реестр через DI диспетчера.
"""
import logging
import random
from dataclasses import dataclass

from tablebot.catalog import get_table_info
from tablebot.checkout import CheckoutSequencer
from tablebot.config import Settings
from tablebot.models import TableInfo
from tablebot.store import ClearOrder, OrderStore, SetCustomerDetails
from tablebot.timers import TaskScope

logger = logging.getLogger(__name__)


@dataclass
class Session:
    chat_id: int
    store: OrderStore
    checkout: CheckoutSequencer
    table: TableInfo

    @property
    def table_number(self) -> str:
        return self.store.state.table_number


class SessionRegistry:
    def __init__(self, settings: Settings, rng: random.Random | None = None) -> None:
        self.settings = settings
        self._rng = rng
        self._sessions: dict[int, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._sessions

    def get(self, chat_id: int) -> Session | None:
        return self._sessions.get(chat_id)

    def get_or_create(self, chat_id: int, table_id: str | None = None) -> Session:
        session = self._sessions.get(chat_id)
        if session is None:
            session = self._create(chat_id, table_id or self.settings.default_table)
        return session

    def start(self, chat_id: int, table_id: str | None = None) -> Session:
        """Новая сессия для стола; старая закрывается вместе с таймерами."""
        self.close(chat_id)
        return self._create(chat_id, table_id or self.settings.default_table)

    def _create(self, chat_id: int, table_id: str) -> Session:
        store = OrderStore(default_table=self.settings.default_table)
        # номер стола приходит из deep link, как параметр маршрута
        store.dispatch(SetCustomerDetails(name="", table_number=table_id))
        session = Session(
            chat_id=chat_id,
            store=store,
            checkout=self._new_checkout(chat_id, store),
            table=get_table_info(table_id),
        )
        self._sessions[chat_id] = session
        logger.info("session_started", extra={"chat_id": chat_id, "table": table_id})
        return session

    def clear(self, chat_id: int) -> Session:
        """Очистка заказа: пустая корзина, тот же стол."""
        session = self._sessions.get(chat_id)
        if session is None:
            return self.start(chat_id)

        table_id = session.table_number
        session.checkout.dispose()
        session.store.dispatch(ClearOrder())
        session.store.dispatch(SetCustomerDetails(name="", table_number=table_id))
        session.checkout = self._new_checkout(chat_id, session.store)
        logger.info("session_cleared", extra={"chat_id": chat_id, "table": table_id})
        return session

    def _new_checkout(self, chat_id: int, store: OrderStore) -> CheckoutSequencer:
        return CheckoutSequencer(
            store,
            self.settings,
            scope=TaskScope(name=f"chat:{chat_id}"),
            rng=self._rng,
        )

    def close(self, chat_id: int) -> None:
        session = self._sessions.pop(chat_id, None)
        if session is None:
            return
        session.checkout.dispose()
        logger.info("session_closed", extra={"chat_id": chat_id})

    def close_all(self) -> None:
        for chat_id in list(self._sessions):
            self.close(chat_id)
