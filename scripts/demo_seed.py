#!/usr/bin/env python3
"""Seed a demo restaurant with a small menu and six dining tables.

The menu mixes kitchen dishes with beverages so both station displays have
work once orders arrive. Each table is created through the table service,
which issues its first OTP. Pass ``--reset`` to purge the restaurant's
menu and tables before seeding.
"""

from __future__ import annotations

import argparse
import asyncio
import json

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from api.app.db import dispose_engine, get_sessionmaker, init_db
from api.app.domain.roles import Actor, Role
from api.app.models_tenant import MenuCategory, MenuItem, Table
from api.app.services import tables as table_service

SEED_ACTOR = Actor(id="demo-seed", role=Role.ADMIN)

MENU = {
    "Mains": [("Idli", 30), ("Dosa", 50), ("Paneer Tikka", 180)],
    "Beverages": [("Masala Chai", 15), ("Lime Soda", 40)],
}


async def _reset(session: AsyncSession, restaurant_id: str) -> None:
    """Remove existing menu items, categories and tables."""

    async with session.begin():
        for model in (MenuItem, MenuCategory, Table):
            await session.execute(
                delete(model).where(model.restaurant_id == restaurant_id)
            )


async def _seed_menu(session: AsyncSession, restaurant_id: str) -> list[dict]:
    items = []
    async with session.begin():
        for sort, (category_name, dishes) in enumerate(MENU.items(), start=1):
            category = MenuCategory(
                restaurant_id=restaurant_id, name=category_name, sort=sort
            )
            session.add(category)
            await session.flush()
            for name, price in dishes:
                item = MenuItem(
                    restaurant_id=restaurant_id,
                    category_id=category.id,
                    name=name,
                    price=price,
                )
                session.add(item)
                await session.flush()
                items.append({"id": item.id, "name": name, "category": category_name})
    return items


async def main(restaurant_id: str, reset: bool) -> None:
    await init_db()
    async with get_sessionmaker()() as session:
        if reset:
            await _reset(session, restaurant_id)
        items = await _seed_menu(session, restaurant_id)
        tables = []
        for i in range(1, 7):
            table = await table_service.create_table(
                session, restaurant_id, f"T{i}", 4, actor=SEED_ACTOR
            )
            tables.append(
                {"id": table.id, "tableNumber": table.table_number, "otp": table.current_otp}
            )
    await dispose_engine()
    print(json.dumps({"restaurantId": restaurant_id, "items": items, "tables": tables}))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo restaurant data")
    parser.add_argument("--restaurant", required=True, help="Restaurant identifier")
    parser.add_argument(
        "--reset", action="store_true", help="Purge existing data before seeding"
    )
    args = parser.parse_args()
    asyncio.run(main(args.restaurant, args.reset))
