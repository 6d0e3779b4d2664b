"""
Хранилище состояния заказа.

Каждое изменение описывается отдельным классом действия, а reduce()
возвращает новое состояние, не трогая старое.
"""
import logging
from dataclasses import dataclass

from tablebot.errors import CartValidationError, InvalidTransitionError
from tablebot.models import MenuItem, OrderLineItem, OrderState, OrderStatus

logger = logging.getLogger(__name__)


# ===== ACTIONS =====

@dataclass(frozen=True)
class AddItem:
    item: MenuItem


@dataclass(frozen=True)
class RemoveItem:
    item_id: str


@dataclass(frozen=True)
class SetQuantity:
    item_id: str
    quantity: int
    item: MenuItem | None = None  # нужен, если позиции ещё нет в корзине


@dataclass(frozen=True)
class SetCustomerDetails:
    name: str
    table_number: str
    phone_number: str | None = None


@dataclass(frozen=True)
class SetOrderStatus:
    status: OrderStatus


@dataclass(frozen=True)
class SetOrderId:
    order_id: str


@dataclass(frozen=True)
class SetOtp:
    code: str


@dataclass(frozen=True)
class SetPaymentDetails:
    method: str
    payment_id: str


@dataclass(frozen=True)
class ClearOrder:
    pass


OrderAction = (
    AddItem
    | RemoveItem
    | SetQuantity
    | SetCustomerDetails
    | SetOrderStatus
    | SetOrderId
    | SetOtp
    | SetPaymentDetails
    | ClearOrder
)


def initial_state(table_number: str = "12") -> OrderState:
    return OrderState(table_number=table_number)


# ===== REDUCER =====

def _add_item(items: tuple[OrderLineItem, ...], item: MenuItem) -> tuple[OrderLineItem, ...]:
    for index, line in enumerate(items):
        if line.id == item.id:
            updated = line.model_copy(update={"quantity": line.quantity + 1})
            return items[:index] + (updated,) + items[index + 1:]
    return items + (OrderLineItem(item=item, quantity=1),)


def _remove_item(items: tuple[OrderLineItem, ...], item_id: str) -> tuple[OrderLineItem, ...]:
    new_items = []
    for line in items:
        if line.id == item_id:
            if line.quantity > 1:
                new_items.append(line.model_copy(update={"quantity": line.quantity - 1}))
            # при quantity == 1 строка удаляется
        else:
            new_items.append(line)
    return tuple(new_items)


def _set_quantity(items: tuple[OrderLineItem, ...], action: SetQuantity) -> tuple[OrderLineItem, ...]:
    if action.quantity < 0:
        raise CartValidationError(f"Количество не может быть отрицательным: {action.quantity}")

    if action.quantity == 0:
        return tuple(line for line in items if line.id != action.item_id)

    for index, line in enumerate(items):
        if line.id == action.item_id:
            updated = line.model_copy(update={"quantity": action.quantity})
            return items[:index] + (updated,) + items[index + 1:]

    if action.item is None or action.item.id != action.item_id:
        raise CartValidationError(f"Позиции {action.item_id} нет в корзине")
    return items + (OrderLineItem(item=action.item, quantity=action.quantity),)


def reduce(state: OrderState, action: OrderAction, default_table: str = "12") -> OrderState:
    """Применяет действие к состоянию и возвращает новое состояние."""
    if isinstance(action, AddItem):
        return state.model_copy(update={"items": _add_item(state.items, action.item)})

    if isinstance(action, RemoveItem):
        return state.model_copy(update={"items": _remove_item(state.items, action.item_id)})

    if isinstance(action, SetQuantity):
        return state.model_copy(update={"items": _set_quantity(state.items, action)})

    if isinstance(action, SetCustomerDetails):
        return state.model_copy(update={
            "customer_name": action.name,
            "table_number": action.table_number,
            "phone_number": action.phone_number or state.phone_number,
        })

    if isinstance(action, SetOrderStatus):
        if not state.order_status.can_advance_to(action.status):
            raise InvalidTransitionError(state.order_status.value, action.status.value)
        return state.model_copy(update={"order_status": action.status})

    if isinstance(action, SetOrderId):
        return state.model_copy(update={"order_id": action.order_id})

    if isinstance(action, SetOtp):
        return state.model_copy(update={"otp": action.code})

    if isinstance(action, SetPaymentDetails):
        return state.model_copy(update={
            "payment_method": action.method,
            "payment_id": action.payment_id,
        })

    if isinstance(action, ClearOrder):
        return initial_state(default_table)

    raise TypeError(f"Неизвестное действие: {type(action).__name__}")


# ===== STORE =====

class OrderStore:
    """
    Владелец состояния заказа в рамках одной сессии.

    Все изменения идут через dispatch(), поэтому писатель всегда один.
    """

    def __init__(self, default_table: str = "12", table_number: str | None = None) -> None:
        self._default_table = default_table
        self._state = initial_state(table_number or default_table)

    @property
    def state(self) -> OrderState:
        return self._state

    def dispatch(self, action: OrderAction) -> OrderState:
        previous = self._state
        self._state = reduce(previous, action, self._default_table)

        logger.debug(
            "order_action",
            extra={
                "action": type(action).__name__,
                "order_id": self._state.order_id,
                "status": self._state.order_status.value,
                "items_count": len(self._state.items),
            }
        )
        return self._state
