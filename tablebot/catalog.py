"""Статическое меню ресторана и справочник столов."""
from tablebot.models import MenuItem, SpiceLevel, TableInfo


MENU: tuple[MenuItem, ...] = (
    MenuItem(
        id="1",
        name="Masala Chai",
        description="Traditional Indian spiced tea with aromatic herbs and spices",
        price=45,
        category="Beverages",
        is_veg=True,
        spice_level=SpiceLevel.MILD,
        image="/masala-chai-tea-cup.jpg",
    ),
    MenuItem(
        id="2",
        name="Butter Chicken",
        description="Creamy tomato-based curry with tender chicken pieces",
        price=285,
        category="Main Course",
        is_veg=False,
        spice_level=SpiceLevel.MEDIUM,
        image="/butter-chicken-curry.png",
    ),
    MenuItem(
        id="3",
        name="Paneer Tikka",
        description="Grilled cottage cheese marinated in aromatic spices",
        price=225,
        category="Starters",
        is_veg=True,
        spice_level=SpiceLevel.MEDIUM,
        image="/paneer-tikka-grilled.jpg",
    ),
    MenuItem(
        id="4",
        name="Biryani",
        description="Fragrant basmati rice with spices and your choice of protein",
        price=320,
        category="Main Course",
        is_veg=False,
        spice_level=SpiceLevel.HOT,
        image="/chicken-biryani-rice.jpg",
    ),
    MenuItem(
        id="5",
        name="Samosa",
        description="Crispy pastry filled with spiced potatoes and peas",
        price=35,
        category="Starters",
        is_veg=True,
        spice_level=SpiceLevel.MILD,
        image="/samosa-crispy-pastry.jpg",
    ),
    MenuItem(
        id="6",
        name="Kulfi",
        description="Traditional Indian ice cream with cardamom and pistachios",
        price=85,
        category="Desserts",
        is_veg=True,
        image="/kulfi-indian-ice-cream.jpg",
    ),
)

TABLES: dict[str, TableInfo] = {
    "1": TableInfo(section="Garden", capacity=2, server="Raj"),
    "2": TableInfo(section="Garden", capacity=4, server="Raj"),
    "3": TableInfo(section="Indoor", capacity=2, server="Priya"),
    "4": TableInfo(section="Indoor", capacity=4, server="Priya"),
    "5": TableInfo(section="Indoor", capacity=6, server="Amit"),
    "12": TableInfo(section="VIP", capacity=4, server="Neha"),
    "15": TableInfo(section="Terrace", capacity=8, server="Vikram"),
}

# неизвестный стол: общий зал
DEFAULT_TABLE = TableInfo(section="Main", capacity=4, server="Staff")


def get_menu() -> list[MenuItem]:
    return list(MENU)


def get_menu_item(item_id: str) -> MenuItem | None:
    for item in MENU:
        if item.id == item_id:
            return item
    return None


def get_categories() -> list[str]:
    """Категории в порядке первого появления в меню."""
    categories: list[str] = []
    for item in MENU:
        if item.category not in categories:
            categories.append(item.category)
    return categories


def get_items_by_category(category: str) -> list[MenuItem]:
    return [item for item in MENU if item.category == category]


def get_table_info(table_id: str) -> TableInfo:
    return TABLES.get(table_id, DEFAULT_TABLE)
