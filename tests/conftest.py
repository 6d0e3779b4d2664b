"""Pytest фикстуры для тестов GetMeChai table bot."""
import random
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

from tablebot.checkout import CheckoutSequencer
from tablebot.config import Settings
from tablebot.models import MenuItem, SpiceLevel
from tablebot.session import SessionRegistry
from tablebot.store import AddItem, OrderStore
from tablebot.timers import TaskScope


@pytest.fixture
def fast_settings() -> Settings:
    """Настройки без задержек симуляции."""
    return Settings(
        bot_token="test:token",
        payment_delay=0,
        payment_decline_rate=0.0,
        otp_verify_delay=0,
        otp_ttl_seconds=300,
        otp_max_attempts=5,
        ready_delay=0,
        default_table="12",
    )


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def chai() -> MenuItem:
    return MenuItem(
        id="1",
        name="Masala Chai",
        description="Traditional Indian spiced tea",
        price=45,
        category="Beverages",
        is_veg=True,
        spice_level=SpiceLevel.MILD,
    )


@pytest.fixture
def butter_chicken() -> MenuItem:
    return MenuItem(
        id="2",
        name="Butter Chicken",
        description="Creamy tomato-based curry",
        price=285,
        category="Main Course",
        is_veg=False,
        spice_level=SpiceLevel.MEDIUM,
    )


@pytest.fixture
def kulfi() -> MenuItem:
    return MenuItem(
        id="6",
        name="Kulfi",
        description="Traditional Indian ice cream",
        price=85,
        category="Desserts",
        is_veg=True,
    )


@pytest.fixture
def store() -> OrderStore:
    return OrderStore(default_table="12")


@pytest.fixture
def filled_store(store: OrderStore, chai: MenuItem, butter_chicken: MenuItem) -> OrderStore:
    """Корзина {Masala Chai x2, Butter Chicken x1}: 375 + 68 = 443."""
    store.dispatch(AddItem(chai))
    store.dispatch(AddItem(chai))
    store.dispatch(AddItem(butter_chicken))
    return store


@pytest.fixture
def sequencer(filled_store: OrderStore, fast_settings: Settings, rng: random.Random) -> CheckoutSequencer:
    return CheckoutSequencer(filled_store, fast_settings, scope=TaskScope(name="test"), rng=rng)


@pytest.fixture
def sessions(fast_settings: Settings, rng: random.Random) -> SessionRegistry:
    return SessionRegistry(fast_settings, rng=rng)


@pytest.fixture
def mock_bot() -> MagicMock:
    """Мок aiogram Bot для тестов."""
    bot = MagicMock()
    bot.send_message = AsyncMock(return_value=MagicMock())
    return bot


@pytest.fixture
def memory_storage() -> MemoryStorage:
    """In-memory storage для FSM."""
    return MemoryStorage()


@pytest_asyncio.fixture
async def fsm_context_factory(memory_storage: MemoryStorage):
    """
    Фабрика FSMContext с персистентным state между вызовами.

    Использование:
        state = await fsm_context_factory(user_id=123)
        await state.set_state(TableState.browsing_menu)
    """
    async def _get_context(user_id: int, chat_id: int | None = None) -> FSMContext:
        if chat_id is None:
            chat_id = user_id
        key = StorageKey(bot_id=1, chat_id=chat_id, user_id=user_id)
        return FSMContext(storage=memory_storage, key=key)
    return _get_context


@pytest.fixture
def make_callback(mock_bot: MagicMock):
    """
    Фабрика для создания CallbackQuery с разными data.

    Использование:
        cb = make_callback(user_id=123, data="menu:1")
    """
    def _make(user_id: int, data: str, full_name: str = "Test User") -> MagicMock:
        cb = MagicMock()
        cb.from_user = MagicMock()
        cb.from_user.id = user_id
        cb.from_user.full_name = full_name
        cb.data = data
        cb.message = MagicMock()
        cb.message.edit_text = AsyncMock()
        cb.message.edit_reply_markup = AsyncMock()
        cb.message.answer = AsyncMock()
        cb.message.answer_document = AsyncMock()
        cb.message.chat = MagicMock()
        cb.message.chat.id = user_id
        cb.answer = AsyncMock()
        cb.bot = mock_bot
        return cb
    return _make


@pytest.fixture
def make_message(mock_bot: MagicMock):
    """
    Фабрика для создания Message с разными параметрами.

    Использование:
        msg = make_message(user_id=123, text="/start")
    """
    def _make(user_id: int, text: str, full_name: str = "Test User") -> MagicMock:
        msg = MagicMock()
        msg.from_user = MagicMock()
        msg.from_user.id = user_id
        msg.from_user.full_name = full_name
        msg.text = text
        msg.chat = MagicMock()
        msg.chat.id = user_id
        msg.answer = AsyncMock()
        msg.bot = mock_bot
        return msg
    return _make
