from aiogram.fsm.state import State, StatesGroup


class TableState(StatesGroup):
    """FSM экранов гостя за столом"""
    browsing_menu = State()         # просмотр меню, добавление в корзину
    viewing_cart = State()          # корзина, изменение количества
    entering_name = State()         # ввод имени
    entering_phone = State()        # ввод телефона
    choosing_payment = State()      # выбор способа оплаты
    entering_otp = State()          # ввод кода подтверждения
    confirmed = State()             # заказ подтверждён, статус кухни
    viewing_bill = State()          # счёт
