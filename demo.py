#!/usr/bin/env python
# Run the emulator first: uvicorn app.main:app --port 8085
import asyncio

from pos.config import settings
from pos.logger import setup_logger
from pos.session import PosSession


async def seed(pos: PosSession):
    db = pos.backend
    await db.table("categories").insert([
        {"name": "Oli", "is_active": True},
        {"name": "Sparepart", "is_active": True},
    ]).execute()
    await db.table("suppliers").insert([{"name": "PT Maju Motor", "is_active": True}]).execute()
    await pos.catalog.refresh()

    oli, sparepart = pos.catalog.categories
    supplier = pos.catalog.suppliers[0]
    await pos.save_product({
        "name": "Oli Mesin 1L", "sku": "OLI-001", "barcode": "8991234567001",
        "category_id": oli.id, "supplier_id": supplier.id,
        "buy_price": 45000, "sell_price": 55000, "stock": 12, "min_stock": 3,
    })
    await pos.save_product({
        "name": "Busi Iridium", "sku": "BSI-010", "category_id": sparepart.id,
        "buy_price": 60000, "sell_price": 85000, "stock": 2, "min_stock": 2,
    })


async def main():
    setup_logger(settings)
    async with PosSession.from_settings(settings) as pos:
        # -----------------------------
        # Reset everything for demo
        # -----------------------------
        print("Resetting store...")
        await pos.backend.reset()

        print("\nSeeding catalog...")
        await seed(pos)
        await pos.load()
        print(pos.stats().model_dump(exclude={"low_stock_products"}))

        # -----------------------------
        # Scan and fill the cart
        # -----------------------------
        print("\nScanning 8991234567001...")
        pos.filter.on_scan("8991234567001")
        oli = pos.filter.results()[0]
        busi = pos.catalog.filter_products("busi")[0]
        pos.cart.add_item(oli)
        pos.cart.add_item(oli)
        pos.cart.add_item(busi)
        print(pos.cart.set_quantity(busi.id, 5))
        for line in pos.cart:
            print(f"  {line.name} x{line.quantity} = {line.subtotal}")
        print("Total:", pos.cart.total())

        # -----------------------------
        # Checkout
        # -----------------------------
        print("\nChecking out...")
        result = await pos.checkout(pos.payment(amount=300000, customer_name="Budi"))
        print(result.ok, result.transaction.transaction_code if result.transaction else result.error)

        print("\nStock after sale...")
        for p in pos.catalog.products:
            print(f"  {p.sku}: {p.stock} (low={p.is_low_stock})")
        print(pos.stats().model_dump(exclude={"low_stock_products"}))


if __name__ == "__main__":
    asyncio.run(main())
