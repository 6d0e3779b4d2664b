from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    CART = "cart"               # собирается корзина
    PAYMENT = "payment"         # открыт шлюз оплаты
    CONFIRMED = "confirmed"     # оплачен, ждёт подтверждения кодом
    PREPARING = "preparing"     # готовится на кухне
    READY = "ready"             # готов, скоро подадут
    COMPLETED = "completed"     # подан

    @property
    def rank(self) -> int:
        """Порядковый номер в последовательности оформления."""
        return list(OrderStatus).index(self)

    @property
    def display_name(self) -> str:
        names = {
            "cart": "In Cart",
            "payment": "Awaiting Payment",
            "confirmed": "Order Confirmed!",
            "preparing": "Being Prepared",
            "ready": "Order Ready!",
            "completed": "Served",
        }
        return names[self.value]

    @property
    def description(self) -> str:
        descriptions = {
            "cart": "Add items and proceed to payment when ready",
            "payment": "Complete your order payment",
            "confirmed": "Your order has been confirmed and sent to the kitchen",
            "preparing": "Our chefs are preparing your delicious meal",
            "ready": "Your order is ready and will be served shortly",
            "completed": "Enjoy your meal!",
        }
        return descriptions[self.value]

    @property
    def estimated_minutes(self) -> int:
        """Ориентировочное время до подачи, минуты."""
        minutes = {
            "cart": 0,
            "payment": 0,
            "confirmed": 25,
            "preparing": 20,
            "ready": 0,
            "completed": 0,
        }
        return minutes[self.value]

    def can_advance_to(self, other: "OrderStatus") -> bool:
        return other.rank >= self.rank


class SpiceLevel(str, Enum):
    MILD = "mild"
    MEDIUM = "medium"
    HOT = "hot"


class MenuItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    price: int = Field(gt=0)  # в рупиях
    category: str
    is_veg: bool
    spice_level: SpiceLevel | None = None
    image: str | None = None


class OrderLineItem(BaseModel):
    """Позиция корзины: пункт меню + количество"""
    model_config = ConfigDict(frozen=True)

    item: MenuItem
    quantity: int = Field(default=1, ge=1)

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def name(self) -> str:
        return self.item.name

    @property
    def price(self) -> int:
        return self.item.price

    @property
    def line_total(self) -> int:
        return self.item.price * self.quantity


class OrderState(BaseModel):
    """
    Состояние заказа одной сессии (одного стола).
    Итоги не хранятся, а всегда считаются из items.
    """
    model_config = ConfigDict(frozen=True)

    items: tuple[OrderLineItem, ...] = ()
    customer_name: str = ""
    table_number: str = ""
    phone_number: str = ""
    order_status: OrderStatus = OrderStatus.CART
    order_id: str | None = None
    otp: str | None = None
    payment_method: str | None = None
    payment_id: str | None = None

    def get_line(self, item_id: str) -> OrderLineItem | None:
        for line in self.items:
            if line.id == item_id:
                return line
        return None

    def quantity_of(self, item_id: str) -> int:
        line = self.get_line(item_id)
        return line.quantity if line else 0

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def subtotal(self) -> int:
        return sum(line.line_total for line in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


class TableInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    section: str
    capacity: int
    server: str


class BillTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: int
    tax: int
    cgst: int
    sgst: int
    total: int


class BillLine(BaseModel):
    name: str
    unit_price: int
    quantity: int
    line_total: int


class Bill(BaseModel):
    """Итоговый счёт, только для чтения внешними способами экспорта."""
    bill_number: str
    order_id: str
    issued_at: datetime
    restaurant_name: str
    customer_name: str
    phone_masked: str
    table_number: str
    lines: list[BillLine]
    subtotal: int
    tax: int
    cgst: int
    sgst: int
    total: int
    payment_method: str
