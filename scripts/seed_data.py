"""Seed the menu catalog used to price orders."""

import asyncio
from decimal import Decimal

from orderflow.models.catalog import MenuItem
from orderflow.state.catalog import CatalogRepository
from orderflow.state.manager import StateManager


async def seed_catalog() -> None:
    """Seed menu items with current prices."""
    print("Seeding menu catalog...")

    state_manager = StateManager()
    await state_manager.connect()
    catalog = CatalogRepository(state_manager)

    # Prices in LKR
    menu_items = [
        MenuItem(
            item_id="rice_curry_chicken",
            name="Chicken Rice & Curry",
            category="mains",
            price=Decimal("1450.00"),
            preparation_minutes=20,
        ),
        MenuItem(
            item_id="rice_curry_veg",
            name="Vegetable Rice & Curry",
            category="mains",
            price=Decimal("1100.00"),
            preparation_minutes=15,
        ),
        MenuItem(
            item_id="kottu_chicken",
            name="Chicken Kottu",
            category="mains",
            price=Decimal("1650.00"),
            preparation_minutes=18,
        ),
        MenuItem(
            item_id="hoppers_egg",
            name="Egg Hoppers (2)",
            category="breakfast",
            price=Decimal("650.00"),
            preparation_minutes=10,
        ),
        MenuItem(
            item_id="crab_curry_jaffna",
            name="Jaffna Crab Curry",
            category="specials",
            price=Decimal("4200.00"),
            preparation_minutes=30,
        ),
        MenuItem(
            item_id="devilled_prawns",
            name="Devilled Prawns",
            category="specials",
            price=Decimal("3100.00"),
            preparation_minutes=20,
            is_available=False,
        ),
        MenuItem(
            item_id="watalappan",
            name="Watalappan",
            category="desserts",
            price=Decimal("550.00"),
            preparation_minutes=5,
        ),
        MenuItem(
            item_id="king_coconut",
            name="King Coconut",
            category="drinks",
            price=Decimal("300.00"),
            preparation_minutes=2,
        ),
        MenuItem(
            item_id="ceylon_tea",
            name="Ceylon Tea Pot",
            category="drinks",
            price=Decimal("450.00"),
            preparation_minutes=5,
        ),
    ]

    for item in menu_items:
        await catalog.put_item(item)
        availability = "available" if item.is_available else "unavailable"
        print(f"  ✓ Added {item.name} ({item.price}, {availability})")

    await state_manager.disconnect()

    print("✓ Menu catalog seeded successfully\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 50)
    print("  Seeding Order Orchestrator Data")
    print("=" * 50 + "\n")

    await seed_catalog()

    print("=" * 50)
    print("  ✓ All data seeded successfully!")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
